"""
Signed playback tokens for the video CDN.

Mints short-lived signed embed URLs for lesson videos after re-checking
the caller's entitlement. The CDN verifies tokens with its own copy of the
key; this service never verifies, it is the only place that signs.

Token formula (CDN token authentication):
    token = SHA256_HEX(signing_key + video_id + expires)

Security Requirements:
- Preview lessons are open; everything else requires an active module
  whose required tier the caller meets
- Expiry always in the future at issuance, TTL capped
- Tokens are not stored; shortening TTL or rotating the key is the only
  revocation
"""

import hashlib
import logging
import os
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from membership_access.entitlements.audit import (
    AccessDenialEvent,
    EntitlementAuditLogger,
    get_audit_logger,
)
from membership_access.entitlements.errors import MediaAccessDeniedError, MediaUnavailableError
from membership_access.entitlements.resolver import EntitlementResolver, get_resolver, utc_now
from membership_access.entitlements.tiers import meets

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 3600
MAX_TTL_SECONDS = 72 * 3600
DEFAULT_EMBED_BASE_URL = "https://iframe.mediadelivery.net/embed"


class MediaTokenConfig(BaseModel):
    """Configuration for playback token signing."""
    signing_key: str = Field(..., min_length=1)
    embed_base_url: str = DEFAULT_EMBED_BASE_URL
    default_ttl_seconds: int = Field(DEFAULT_TTL_SECONDS, gt=0)
    max_ttl_seconds: int = Field(MAX_TTL_SECONDS, gt=0)


class SignedMediaToken(BaseModel):
    """Playable reference handed to the caller and forwarded to the CDN verbatim."""
    video_id: str
    path: str
    token: str
    expires: int

    @property
    def embed_url(self) -> str:
        return f"{self.path}?token={self.token}&expires={self.expires}"


def sign(signing_key: str, video_id: str, expires: int) -> str:
    """CDN token: hex SHA-256 over key, video id and expiry epoch."""
    return hashlib.sha256(f"{signing_key}{video_id}{expires}".encode("utf-8")).hexdigest()


class MediaTokenService:
    """
    Issues signed playback tokens.

    Performs no writes; safe under any request concurrency.
    """

    def __init__(
        self,
        config: Optional[MediaTokenConfig] = None,
        resolver: Optional[EntitlementResolver] = None,
        audit: Optional[EntitlementAuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize media token service.

        Args:
            config: Signing configuration. If not provided, loads from environment.
            resolver: Entitlement resolver (defaults to the process-wide one)
            audit: Denial audit sink
            clock: Current time provider
        """
        if config:
            self.config = config
        else:
            signing_key = os.getenv("BUNNY_EMBED_TOKEN_KEY")
            if not signing_key:
                raise ValueError("BUNNY_EMBED_TOKEN_KEY environment variable is required")

            self.config = MediaTokenConfig(
                signing_key=signing_key,
                embed_base_url=os.getenv("BUNNY_EMBED_BASE_URL", DEFAULT_EMBED_BASE_URL),
                default_ttl_seconds=int(os.getenv("MEDIA_TOKEN_TTL_SECONDS", str(DEFAULT_TTL_SECONDS))),
                max_ttl_seconds=int(os.getenv("MEDIA_TOKEN_MAX_TTL_SECONDS", str(MAX_TTL_SECONDS))),
            )

        self.resolver = resolver or get_resolver()
        self.audit = audit or get_audit_logger()
        self.clock = clock or utc_now

    def issue_token(
        self,
        caller: Any,
        lesson: Any,
        module: Optional[Any] = None,
        ttl_seconds: Optional[int] = None,
    ) -> SignedMediaToken:
        """
        Mint a signed token for a lesson video.

        Args:
            caller: Caller profile snapshot
            lesson: Lesson to play
            module: Owning module (ignored for preview lessons)
            ttl_seconds: Token lifetime, defaults to config, capped at max

        Returns:
            SignedMediaToken

        Raises:
            MediaAccessDeniedError: Caller may not play this lesson
            MediaUnavailableError: Lesson has no video asset
            ValueError: Non-positive TTL
        """
        now = self.clock()

        if not lesson.is_preview:
            self._check_access(caller, lesson, module, now)

        video_id = lesson.bunny_video_id
        if not video_id:
            raise MediaUnavailableError(lesson.id)

        ttl = self._effective_ttl(ttl_seconds)
        expires = int(now.timestamp()) + ttl
        path = f"{self.config.embed_base_url.rstrip('/')}/{video_id}"

        result = SignedMediaToken(
            video_id=video_id,
            path=path,
            token=sign(self.config.signing_key, video_id, expires),
            expires=expires,
        )

        logger.info(
            "Issued media token",
            extra={
                "user_id": getattr(caller, "id", None),
                "lesson_id": lesson.id,
                "video_id": video_id,
                "preview": bool(lesson.is_preview),
                "expires": expires,
            }
        )

        return result

    def _check_access(self, caller: Any, lesson: Any, module: Optional[Any], now: datetime) -> None:
        if module is None or module.id != lesson.module_id:
            self._deny(
                caller, lesson, module,
                MediaAccessDeniedError.MODULE_NOT_FOUND,
                "Lesson module not found",
            )

        # Deactivated content is never playable, administrators included
        if not module.is_active:
            self._deny(
                caller, lesson, module,
                MediaAccessDeniedError.MODULE_INACTIVE,
                "Module is not active",
            )

        user_tier = self.resolver.resolve(caller, now=now)
        required_tier = self.resolver.resolve_required_tier(module.required_license)
        if not meets(user_tier, required_tier):
            self._deny(
                caller, lesson, module,
                MediaAccessDeniedError.INSUFFICIENT_LICENSE,
                f"License '{user_tier.label}' does not meet required '{required_tier.label}'",
                user_tier=user_tier.label,
                required_tier=required_tier.label,
            )

    def _deny(
        self,
        caller: Any,
        lesson: Any,
        module: Optional[Any],
        reason_code: str,
        reason: str,
        user_tier: Optional[str] = None,
        required_tier: Optional[str] = None,
    ) -> None:
        module_id = module.id if module is not None else lesson.module_id
        self.audit.log_denial(AccessDenialEvent(
            reason_code=reason_code,
            user_id=getattr(caller, "id", None),
            lesson_id=lesson.id,
            module_id=module_id,
            user_tier=user_tier,
            required_tier=required_tier,
            reason=reason,
        ))
        raise MediaAccessDeniedError(
            reason_code=reason_code,
            reason=reason,
            lesson_id=lesson.id,
            module_id=module_id,
            user_tier=user_tier,
            required_tier=required_tier,
        )

    def _effective_ttl(self, ttl_seconds: Optional[int]) -> int:
        if ttl_seconds is None:
            ttl = self.config.default_ttl_seconds
        else:
            ttl = int(ttl_seconds)
            if ttl <= 0:
                raise ValueError("ttl_seconds must be positive")

        if ttl > self.config.max_ttl_seconds:
            logger.warning(
                "Media token TTL capped",
                extra={"requested": ttl, "max": self.config.max_ttl_seconds},
            )
            ttl = self.config.max_ttl_seconds
        return ttl


def get_media_token_service() -> MediaTokenService:
    """
    Factory function to get media token service instance.

    Returns configured service or raises ValueError if the signing key is
    not configured.
    """
    return MediaTokenService()
