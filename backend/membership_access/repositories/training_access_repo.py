"""
Training access (grant) repository.

CRITICAL: grants are only ever written through upsert(). The unique
constraint on (user_id, module_id) plus ON CONFLICT DO NOTHING is what
makes concurrent and repeated reconciliation runs safe; there is no lock.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Set

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from membership_access.models.base import generate_uuid
from membership_access.models.training_access import TrainingAccess, AccessType

logger = logging.getLogger(__name__)

_CONFLICT_COLUMNS = ["user_id", "module_id"]


class TrainingAccessRepository:
    """Grant reads and idempotent grant writes."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def list_module_ids(self, user_id: str) -> Set[str]:
        rows = (
            self.db_session.query(TrainingAccess.module_id)
            .filter(TrainingAccess.user_id == user_id)
            .all()
        )
        return {row.module_id for row in rows}

    def upsert(
        self,
        user_id: str,
        module_id: str,
        access_type: str = AccessType.FULL.value,
        granted_at: Optional[datetime] = None,
    ) -> bool:
        """
        Insert a grant unless one already exists for (user_id, module_id).

        Runs in its own SAVEPOINT so a failure leaves the surrounding
        transaction usable. Returns True if a row was written, False if
        the grant already existed.
        """
        values = {
            "id": generate_uuid(),
            "user_id": user_id,
            "module_id": module_id,
            "access_type": access_type,
            "granted_at": granted_at or datetime.now(timezone.utc),
        }

        dialect = self.db_session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(TrainingAccess).values(**values).on_conflict_do_nothing(
                index_elements=_CONFLICT_COLUMNS
            )
        elif dialect == "sqlite":
            stmt = sqlite_insert(TrainingAccess).values(**values).on_conflict_do_nothing(
                index_elements=_CONFLICT_COLUMNS
            )
        else:
            return self._insert_if_missing(values)

        with self.db_session.begin_nested():
            result = self.db_session.execute(stmt)
        return result.rowcount == 1

    def _insert_if_missing(self, values: dict) -> bool:
        """Fallback for dialects without ON CONFLICT; the unique constraint still guards races."""
        with self.db_session.begin_nested():
            exists = (
                self.db_session.query(TrainingAccess.id)
                .filter(
                    TrainingAccess.user_id == values["user_id"],
                    TrainingAccess.module_id == values["module_id"],
                )
                .first()
            )
            if exists:
                return False
            self.db_session.add(TrainingAccess(**values))
            self.db_session.flush()
        return True
