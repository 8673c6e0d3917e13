"""
Developer License Expiry Service - lapse policy for the subject's admin role.

Each run is a single read-evaluate-write pass over the subject's
DeveloperLicense:

    no record                        -> create default ACTIVE record
    ACTIVE, renewal overdue          -> deactivate (GRACE), role untouched
    GRACE, grace period over         -> demote subject admin -> client (REVOKED)
    anything else                    -> no change

The two transitions are separate commits. If the demotion fails, the
deactivation already persisted and the next run picks up from GRACE.
Every write is conditional, so overlapping runs are harmless.
"""

import logging
import math
import os
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from membership_access.entitlements.errors import RoleDowngradeError
from membership_access.entitlements.resolver import utc_now
from membership_access.models.base import ensure_utc
from membership_access.models.developer_license import (
    DeveloperLicense,
    LicenseState,
    DEFAULT_GRACE_DAYS,
)
from membership_access.models.profile import ELEVATED_ROLE, ORDINARY_ROLE
from membership_access.repositories.developer_license_repo import DeveloperLicenseRepository
from membership_access.repositories.profiles_repo import ProfileRepository

logger = logging.getLogger(__name__)


class LicenseCheckConfig(BaseModel):
    """Configuration for the license lapse policy."""
    subject_email: str = Field(..., min_length=3)
    default_grace_days: int = Field(DEFAULT_GRACE_DAYS, ge=0)


class LicenseCheckAction:
    CREATED = "created"
    DEACTIVATED = "deactivated"
    REVOKED = "revoked"
    RENEWED = "renewed"
    NONE = "none"


class LicenseCheckResult(BaseModel):
    """Status payload returned to the trigger."""
    action: str
    state: str
    is_active: bool
    auto_renewal_enabled: bool = False
    deactivated_at: Optional[datetime] = None
    days_remaining: int = 0
    checked_at: datetime


def load_license_check_config() -> LicenseCheckConfig:
    subject_email = os.getenv("LICENSE_SUBJECT_EMAIL")
    if not subject_email:
        raise ValueError("LICENSE_SUBJECT_EMAIL environment variable is required")
    return LicenseCheckConfig(
        subject_email=subject_email,
        default_grace_days=int(os.getenv("LICENSE_GRACE_DAYS", str(DEFAULT_GRACE_DAYS))),
    )


def state_of(license_record: DeveloperLicense, subject_role: Optional[str]) -> LicenseState:
    """Classify a license; REVOKED once inactive and the subject is no longer elevated."""
    if license_record.is_active:
        return LicenseState.ACTIVE
    if subject_role != ELEVATED_ROLE and license_record.deactivated_at is not None:
        return LicenseState.REVOKED
    return LicenseState.GRACE


def days_remaining(license_record: DeveloperLicense, now: datetime) -> int:
    """Whole days until the next transition is due, never negative."""
    if license_record.is_active:
        due = license_record.renewal_due_at
    else:
        due = license_record.revocation_due_at
    if due is None:
        return 0
    return max(0, math.ceil((due - now).total_seconds() / 86400))


class LicenseExpiryService:
    """Evaluates and enforces the developer license lapse policy."""

    def __init__(
        self,
        session: Session,
        config: Optional[LicenseCheckConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.config = config or load_license_check_config()
        self.clock = clock or utc_now
        self.licenses = DeveloperLicenseRepository(session)
        self.profiles = ProfileRepository(session)

    def run_check(self) -> LicenseCheckResult:
        """
        Run one pass of the lapse policy.

        Raises:
            RoleDowngradeError: The demotion write failed; deactivation state
                is left intact for the next run.
        """
        now = ensure_utc(self.clock())
        subject = self.config.subject_email

        license_record = self.licenses.get_for_subject(subject)
        if license_record is None:
            license_record = self.licenses.create_default(
                subject, now, grace_days=self.config.default_grace_days
            )
            self.session.commit()
            logger.info(
                "No developer license found, created default",
                extra={"subject_email": subject, "grace_days": license_record.admin_revocation_days},
            )
            return self._result(LicenseCheckAction.CREATED, license_record, now)

        if license_record.auto_renewal_enabled:
            return self._result(LicenseCheckAction.NONE, license_record, now)

        if license_record.is_lapsed(now):
            license_record.deactivate(now)
            self.session.commit()
            logger.warning(
                "Developer license lapsed, grace period started",
                extra={
                    "subject_email": subject,
                    "last_payment_date": ensure_utc(license_record.last_payment_date).isoformat(),
                    "grace_days": license_record.admin_revocation_days,
                },
            )
            return self._result(LicenseCheckAction.DEACTIVATED, license_record, now)

        if not license_record.is_active and license_record.deactivated_at is None:
            # Deactivated outside this policy without a timestamp; start grace now
            license_record.deactivated_at = now
            self.session.commit()
            logger.warning(
                "Inactive developer license had no deactivation time",
                extra={"subject_email": subject},
            )
            return self._result(LicenseCheckAction.DEACTIVATED, license_record, now)

        if license_record.is_revocation_due(now):
            try:
                with self.session.begin_nested():
                    demoted = self.profiles.demote_role(subject, ELEVATED_ROLE, ORDINARY_ROLE)
            except Exception as e:
                logger.error(
                    "Failed to revoke admin role",
                    extra={"subject_email": subject},
                    exc_info=True,
                )
                raise RoleDowngradeError(subject, e) from e
            self.session.commit()

            if demoted:
                logger.warning(
                    "Admin role revoked after grace period",
                    extra={"subject_email": subject},
                )
                return self._result(LicenseCheckAction.REVOKED, license_record, now)

        return self._result(LicenseCheckAction.NONE, license_record, now)

    def renew(self, auto_renewal: bool = False, restore_role: bool = False) -> LicenseCheckResult:
        """
        External renewal trigger: back to ACTIVE from any state.

        Args:
            auto_renewal: Mark the license as auto-renewed, waiving the lapse policy
            restore_role: Give the subject its admin role back
        """
        now = ensure_utc(self.clock())
        subject = self.config.subject_email

        license_record = self.licenses.get_for_subject(subject)
        if license_record is None:
            license_record = self.licenses.create_default(
                subject, now, grace_days=self.config.default_grace_days
            )
        license_record.renew(now, auto_renewal=auto_renewal)

        if restore_role:
            self.profiles.set_role(subject, ELEVATED_ROLE)

        self.session.commit()
        logger.info(
            "Developer license renewed",
            extra={
                "subject_email": subject,
                "auto_renewal": auto_renewal,
                "restore_role": restore_role,
            },
        )
        return self._result(LicenseCheckAction.RENEWED, license_record, now)

    def _result(self, action: str, license_record: DeveloperLicense, now: datetime) -> LicenseCheckResult:
        subject_profile = self.profiles.get_by_email(self.config.subject_email)
        subject_role = subject_profile.role if subject_profile is not None else None
        return LicenseCheckResult(
            action=action,
            state=state_of(license_record, subject_role).value,
            is_active=license_record.is_active,
            auto_renewal_enabled=bool(license_record.auto_renewal_enabled),
            deactivated_at=ensure_utc(license_record.deactivated_at),
            days_remaining=days_remaining(license_record, now),
            checked_at=now,
        )
