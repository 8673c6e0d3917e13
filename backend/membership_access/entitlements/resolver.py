"""
Entitlement resolver - effective tier for an account snapshot.

Resolution order (deterministic):
    1. Administrative role (admin, developer)  -> ELITE
    2. Stored license through the alias table  -> tier, unknown -> NONE
    3. Expired license_valid_until              -> NONE (policy toggle)

CRITICAL: resolution never raises and never fails open. Anything the
resolver cannot make sense of resolves to NONE.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from membership_access.entitlements.loader import LicenseTierLoader, get_license_tier_loader
from membership_access.entitlements.tiers import Tier
from membership_access.models.base import ensure_utc
from membership_access.models.profile import ADMINISTRATIVE_ROLES

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementResolver:
    """
    Maps a profile (or any object exposing role, license and
    license_valid_until) to its effective Tier.

    Stateless apart from the alias table; safe to share across threads.
    """

    def __init__(
        self,
        loader: Optional[LicenseTierLoader] = None,
        enforce_expiry: bool = True,
        clock: Optional[Clock] = None,
    ):
        self._loader = loader
        self.enforce_expiry = enforce_expiry
        self.clock = clock or utc_now

    @property
    def loader(self) -> LicenseTierLoader:
        """Injected loader, else the current process-wide one."""
        return self._loader or get_license_tier_loader()

    def resolve(self, account: Any, now: Optional[datetime] = None) -> Tier:
        try:
            return self._resolve(account, now)
        except Exception:
            logger.warning(
                "Entitlement resolution failed, denying",
                extra={"account_id": getattr(account, "id", None)},
                exc_info=True,
            )
            return Tier.NONE

    def _resolve(self, account: Any, now: Optional[datetime]) -> Tier:
        if account is None:
            return Tier.NONE

        role = getattr(account, "role", None)
        if isinstance(role, str) and role.strip().lower() in ADMINISTRATIVE_ROLES:
            return Tier.ELITE

        tier = self.normalize_license(getattr(account, "license", None))
        if tier == Tier.NONE or not self.enforce_expiry:
            return tier

        valid_until = getattr(account, "license_valid_until", None)
        if valid_until is None:
            return tier

        expires_at = self._parse_timestamp(valid_until)
        if expires_at is None:
            logger.warning(
                "Unreadable license expiry, denying",
                extra={"account_id": getattr(account, "id", None)},
            )
            return Tier.NONE

        current = ensure_utc(now) if now is not None else self.clock()
        if expires_at < current:
            return Tier.NONE
        return tier

    def normalize_license(self, value: Any) -> Tier:
        """Stored license value to tier; None, empty and unknown are NONE."""
        if not isinstance(value, str) or not value.strip():
            return Tier.NONE
        tier = self.loader.lookup(value)
        if tier is None:
            logger.debug("Unrecognized license value", extra={"license": value})
            return Tier.NONE
        return tier

    def resolve_required_tier(self, value: Any) -> Tier:
        """
        Required tier of a module.

        Missing requirement defaults to STARTER; an unrecognized one to
        ELITE so a typo in the catalog never opens a module.
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            return self.loader.missing_required_tier
        if not isinstance(value, str):
            return self.loader.unknown_required_tier
        tier = self.loader.lookup(value)
        if tier is None:
            return self.loader.unknown_required_tier
        return tier

    @staticmethod
    def _parse_timestamp(value: Any) -> Optional[datetime]:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, str):
            try:
                return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
            except ValueError:
                return None
        return None


_default_resolver: Optional[EntitlementResolver] = None


def get_resolver() -> EntitlementResolver:
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = EntitlementResolver()
    return _default_resolver


def resolve_tier(account: Any) -> Tier:
    return get_resolver().resolve(account)
