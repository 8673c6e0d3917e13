"""
Entitlement engine services.

- AccessGrantReconciler: additive training access reconciliation
- MediaTokenService: signed playback tokens for the video CDN
- LicenseExpiryService: developer license lapse policy
"""

from membership_access.services.access_reconciler import (
    AccessGrantReconciler,
    ReconciliationResult,
    GrantError,
    ProfileNotFoundError,
)
from membership_access.services.media_token_service import (
    MediaTokenService,
    MediaTokenConfig,
    SignedMediaToken,
    get_media_token_service,
)
from membership_access.services.license_expiry_service import (
    LicenseExpiryService,
    LicenseCheckConfig,
    LicenseCheckResult,
    LicenseCheckAction,
)

__all__ = [
    "AccessGrantReconciler",
    "ReconciliationResult",
    "GrantError",
    "ProfileNotFoundError",
    "MediaTokenService",
    "MediaTokenConfig",
    "SignedMediaToken",
    "get_media_token_service",
    "LicenseExpiryService",
    "LicenseCheckConfig",
    "LicenseCheckResult",
    "LicenseCheckAction",
]
