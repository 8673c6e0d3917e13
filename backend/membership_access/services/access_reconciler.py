"""
Access Grant Reconciler.

Brings a member's training_access rows in line with the modules their
license entitles them to:

1. Resolve the effective tier
2. Keep the active modules whose required tier the member meets
3. Compare with the grants already on file
4. Upsert a grant for every entitled module that has none

Additive only: this pass never deletes or narrows a grant. Access is
removed by explicit admin action or the license lapse policy.

A failed write for one module is recorded and the pass continues with
the remaining modules; the result reports partial success.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from membership_access.entitlements.resolver import EntitlementResolver, get_resolver
from membership_access.entitlements.tiers import Tier, meets
from membership_access.models.training_access import AccessType
from membership_access.repositories.catalog_repo import CatalogRepository
from membership_access.repositories.profiles_repo import ProfileRepository
from membership_access.repositories.training_access_repo import TrainingAccessRepository

logger = logging.getLogger(__name__)

# Attempts per module before a transient store error is reported
DEFAULT_MAX_ATTEMPTS = 2


class ProfileNotFoundError(LookupError):
    """No profile with the requested id."""


@dataclass(frozen=True)
class GrantError:
    """A grant write that failed for one module."""
    module_id: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"module_id": self.module_id, "error": self.error}


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one member."""
    user_id: str
    tier: Tier
    granted: List[str] = field(default_factory=list)
    already_present: List[str] = field(default_factory=list)
    errors: List[GrantError] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return len(self.granted)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "tier": self.tier.label,
            "granted": list(self.granted),
            "already_present": list(self.already_present),
            "errors": [e.to_dict() for e in self.errors],
        }


class AccessGrantReconciler:
    """Additive reconciliation of training access grants."""

    def __init__(
        self,
        session: Session,
        resolver: Optional[EntitlementResolver] = None,
        grants: Optional[TrainingAccessRepository] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.session = session
        self.resolver = resolver or get_resolver()
        self.grants = grants or TrainingAccessRepository(session)
        self.max_attempts = max(1, max_attempts)

    def entitled_modules(self, tier: Tier, candidate_modules: Iterable[Any]) -> List[Any]:
        """Active candidates whose required tier is met by tier."""
        if tier == Tier.NONE:
            return []
        return [
            module for module in candidate_modules
            if module.is_active
            and meets(tier, self.resolver.resolve_required_tier(module.required_license))
        ]

    def reconcile(
        self,
        account: Any,
        candidate_modules: Iterable[Any],
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        """
        Reconcile one account against the candidate modules.

        Args:
            account: Profile snapshot (id, role, license, license_valid_until)
            candidate_modules: Currently active modules
            now: Reference time for the expiry check and granted_at

        Returns:
            ReconciliationResult; errors are per module, never raised
        """
        tier = self.resolver.resolve(account, now=now)
        result = ReconciliationResult(user_id=account.id, tier=tier)

        entitled = self.entitled_modules(tier, candidate_modules)
        if not entitled:
            logger.debug(
                "Nothing to reconcile",
                extra={"user_id": account.id, "tier": tier.label},
            )
            return result

        existing = self.grants.list_module_ids(account.id)

        for module in entitled:
            if module.id in existing:
                result.already_present.append(module.id)
                continue

            try:
                written = self._upsert_with_retry(account.id, module.id, now)
            except Exception as e:
                logger.error(
                    "Failed to write access grant",
                    extra={"user_id": account.id, "module_id": module.id},
                    exc_info=True,
                )
                result.errors.append(GrantError(module_id=module.id, error=str(e)))
                continue

            if written:
                result.granted.append(module.id)
            else:
                # Another writer got there first
                result.already_present.append(module.id)

        if result.granted or result.errors:
            logger.info(
                "Access grants reconciled",
                extra={
                    "user_id": account.id,
                    "tier": tier.label,
                    "granted": len(result.granted),
                    "already_present": len(result.already_present),
                    "errors": len(result.errors),
                },
            )

        return result

    def _upsert_with_retry(self, user_id: str, module_id: str, now: Optional[datetime]) -> bool:
        """Upsert one grant, retrying transient store errors for this module only."""
        attempt = 1
        while True:
            try:
                return self.grants.upsert(
                    user_id=user_id,
                    module_id=module_id,
                    access_type=AccessType.FULL.value,
                    granted_at=now,
                )
            except SQLAlchemyError:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "Retrying access grant write",
                    extra={"user_id": user_id, "module_id": module_id, "attempt": attempt},
                )
                attempt += 1

    def reconcile_user(self, user_id: str, now: Optional[datetime] = None) -> ReconciliationResult:
        """Load the profile and all active modules, then reconcile."""
        profile = ProfileRepository(self.session).get_by_id(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"Profile '{user_id}' not found")

        modules = CatalogRepository(self.session).list_active_modules()
        return self.reconcile(profile, modules, now=now)
