"""
TrainingAccess model - persisted grant of one module to one user.

At most one grant exists per (user_id, module_id). Writers must go
through TrainingAccessRepository.upsert, which relies on the unique
constraint with ON CONFLICT DO NOTHING instead of check-then-insert.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)

from membership_access.db_base import Base
from membership_access.models.base import generate_uuid


class AccessType(str, enum.Enum):
    """Grant kinds."""
    FULL = "full"
    MANUAL = "manual"


class TrainingAccess(Base):
    """Grant record (user, module)."""

    __tablename__ = "training_access"

    id = Column(String(255), primary_key=True, default=generate_uuid)

    user_id = Column(
        String(255),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    module_id = Column(
        String(255),
        ForeignKey("training_modules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    access_type = Column(
        String(50),
        nullable=False,
        default=AccessType.FULL.value,
    )

    granted_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_training_access_user_module"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrainingAccess(user_id={self.user_id}, module_id={self.module_id}, "
            f"access_type={self.access_type})>"
        )
