"""
Database models for the entitlement engine.

Importing this package registers every table on the shared Base.
"""

from membership_access.models.profile import Profile, Role
from membership_access.models.training import TrainingModule, TrainingLesson
from membership_access.models.training_access import TrainingAccess, AccessType
from membership_access.models.developer_license import DeveloperLicense, LicenseState

__all__ = [
    "Profile",
    "Role",
    "TrainingModule",
    "TrainingLesson",
    "TrainingAccess",
    "AccessType",
    "DeveloperLicense",
    "LicenseState",
]
