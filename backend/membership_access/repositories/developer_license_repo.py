"""
Developer license repository.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from membership_access.models.developer_license import DeveloperLicense, DEFAULT_GRACE_DAYS


class DeveloperLicenseRepository:
    """Access to the standing authorization record of one subject."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_for_subject(self, subject_email: str) -> Optional[DeveloperLicense]:
        return (
            self.db_session.query(DeveloperLicense)
            .filter(DeveloperLicense.subject_email == subject_email)
            .first()
        )

    def create_default(
        self,
        subject_email: str,
        now: datetime,
        grace_days: int = DEFAULT_GRACE_DAYS,
    ) -> DeveloperLicense:
        license_record = DeveloperLicense(
            subject_email=subject_email,
            is_active=True,
            last_payment_date=now,
            admin_revocation_days=grace_days,
            auto_renewal_enabled=False,
        )
        self.db_session.add(license_record)
        self.db_session.flush()
        return license_record
