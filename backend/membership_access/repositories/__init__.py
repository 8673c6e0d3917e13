"""
Repository layer for the entitlement engine.

Repositories own every query and write against the shared store so the
services stay free of SQL.
"""

from membership_access.repositories.profiles_repo import ProfileRepository
from membership_access.repositories.catalog_repo import CatalogRepository
from membership_access.repositories.training_access_repo import TrainingAccessRepository
from membership_access.repositories.developer_license_repo import DeveloperLicenseRepository

__all__ = [
    "ProfileRepository",
    "CatalogRepository",
    "TrainingAccessRepository",
    "DeveloperLicenseRepository",
]
