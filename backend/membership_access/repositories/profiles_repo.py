"""
Profile repository.

Reads profile snapshots and performs the one role write the engine is
allowed to make.
"""

import logging
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from membership_access.models.profile import Profile

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Read access to profiles plus conditional role updates."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_by_id(self, user_id: str) -> Optional[Profile]:
        return self.db_session.query(Profile).filter(Profile.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[Profile]:
        return self.db_session.query(Profile).filter(Profile.email == email).first()

    def iter_batches(self, batch_size: int = 200) -> Iterator[List[Profile]]:
        """
        Page through all profiles ordered by id.

        Keyset pagination, so commits between batches do not shift pages.
        """
        last_id: Optional[str] = None
        while True:
            query = self.db_session.query(Profile).order_by(Profile.id)
            if last_id is not None:
                query = query.filter(Profile.id > last_id)
            batch = query.limit(batch_size).all()
            if not batch:
                return
            yield batch
            last_id = batch[-1].id

    def demote_role(self, email: str, from_role: str, to_role: str) -> int:
        """
        Change the role of the profile with this email, only if it
        currently holds from_role. Returns number of rows changed.
        """
        updated = (
            self.db_session.query(Profile)
            .filter(Profile.email == email, Profile.role == from_role)
            .update({"role": to_role}, synchronize_session="fetch")
        )
        if updated:
            logger.info(
                "Profile role changed",
                extra={"email": email, "from_role": from_role, "to_role": to_role},
            )
        return updated

    def set_role(self, email: str, role: str) -> int:
        updated = (
            self.db_session.query(Profile)
            .filter(Profile.email == email, Profile.role != role)
            .update({"role": role}, synchronize_session="fetch")
        )
        if updated:
            logger.info("Profile role set", extra={"email": email, "role": role})
        return updated
