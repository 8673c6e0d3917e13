"""
License entitlements.

This module provides:
- Tier, rank, meets: ordered license tiers
- LicenseTierLoader: alias table from config/license_tiers.yml
- EntitlementResolver: effective tier of an account
- MediaAccessDeniedError and friends: structured denials
- EntitlementAuditLogger: audit trail of denials

Resolution order: administrative role -> license alias -> expiry -> deny
"""

from membership_access.entitlements.tiers import Tier, rank, meets
from membership_access.entitlements.loader import (
    LicenseTierLoader,
    get_license_tier_loader,
    reset_license_tier_loader,
)
from membership_access.entitlements.resolver import (
    EntitlementResolver,
    get_resolver,
    resolve_tier,
)
from membership_access.entitlements.errors import (
    EntitlementError,
    MediaAccessDeniedError,
    MediaUnavailableError,
    RoleDowngradeError,
)
from membership_access.entitlements.audit import (
    AccessDenialEvent,
    EntitlementAuditLogger,
    get_audit_logger,
)

__all__ = [
    "Tier",
    "rank",
    "meets",
    "LicenseTierLoader",
    "get_license_tier_loader",
    "reset_license_tier_loader",
    "EntitlementResolver",
    "get_resolver",
    "resolve_tier",
    "EntitlementError",
    "MediaAccessDeniedError",
    "MediaUnavailableError",
    "RoleDowngradeError",
    "AccessDenialEvent",
    "EntitlementAuditLogger",
    "get_audit_logger",
]
