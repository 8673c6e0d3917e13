"""
DeveloperLicense model - the standing authorization behind an elevated role.

One record per subject account. While the license is kept up to date the
subject keeps its admin role. When it lapses, the record enters a grace
period; once the grace period is over the lapse policy demotes the
subject to an ordinary client.

Lifecycle:
1. ACTIVE  -> last_payment_date + grace passed -> is_active=False, deactivated_at set (GRACE)
2. GRACE   -> deactivated_at + grace passed    -> subject role demoted (REVOKED)
3. any     -> explicit renewal                 -> is_active=True, deactivated_at cleared
"""

import enum
from datetime import datetime, timezone, timedelta
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
)

from membership_access.db_base import Base
from membership_access.models.base import TimestampMixin, generate_uuid, ensure_utc

DEFAULT_GRACE_DAYS = 30


class LicenseState(str, enum.Enum):
    ACTIVE = "active"
    GRACE = "grace"
    REVOKED = "revoked"


class DeveloperLicense(Base, TimestampMixin):
    """Standing authorization record for one subject account."""

    __tablename__ = "developer_license"

    id = Column(String(255), primary_key=True, default=generate_uuid)

    subject_email = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="Account whose admin role depends on this license",
    )

    is_active = Column(Boolean, nullable=False, default=True)

    last_payment_date = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="Last renewal",
    )

    deactivated_at = Column(DateTime(timezone=True), nullable=True)

    admin_revocation_days = Column(
        Integer,
        nullable=False,
        default=DEFAULT_GRACE_DAYS,
        comment="Grace period length in days",
    )

    auto_renewal_enabled = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Payment validated with auto renewal; lapse policy waived",
    )

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.admin_revocation_days or 0)

    @property
    def renewal_due_at(self) -> datetime:
        """When an active license lapses into its grace period."""
        return ensure_utc(self.last_payment_date) + self.grace_period

    @property
    def revocation_due_at(self) -> Optional[datetime]:
        """When the grace period of a deactivated license ends."""
        if self.deactivated_at is None:
            return None
        return ensure_utc(self.deactivated_at) + self.grace_period

    def is_lapsed(self, now: datetime) -> bool:
        return self.is_active and now > self.renewal_due_at

    def is_revocation_due(self, now: datetime) -> bool:
        due = self.revocation_due_at
        return not self.is_active and due is not None and now >= due

    def deactivate(self, now: datetime) -> None:
        self.is_active = False
        self.deactivated_at = now

    def renew(self, now: datetime, auto_renewal: bool = False) -> None:
        self.is_active = True
        self.last_payment_date = now
        self.deactivated_at = None
        if auto_renewal:
            self.auto_renewal_enabled = True

    def __repr__(self) -> str:
        return (
            f"<DeveloperLicense(id={self.id}, subject_email={self.subject_email}, "
            f"is_active={self.is_active}, deactivated_at={self.deactivated_at})>"
        )
