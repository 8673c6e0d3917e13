"""
Structured error classes for entitlement enforcement.
"""

from typing import Optional
from fastapi import status


class EntitlementError(Exception):
    """Base exception for entitlement errors."""
    pass


class MediaAccessDeniedError(EntitlementError):
    """
    Raised when a caller may not play a lesson.

    Distinct from transient failures: retrying will not help until the
    caller's license or the module changes.
    """

    INSUFFICIENT_LICENSE = "insufficient_license"
    MODULE_INACTIVE = "module_inactive"
    MODULE_NOT_FOUND = "module_not_found"

    def __init__(
        self,
        reason_code: str,
        reason: str,
        lesson_id: Optional[str] = None,
        module_id: Optional[str] = None,
        user_tier: Optional[str] = None,
        required_tier: Optional[str] = None,
        http_status: int = status.HTTP_403_FORBIDDEN,
    ):
        """
        Initialize media access denied error.

        Args:
            reason_code: Machine-readable code (one of the class constants)
            reason: Human-readable reason
            lesson_id: Lesson that was requested
            module_id: Owning module, when known
            user_tier: Caller's effective tier label
            required_tier: Module's required tier label
            http_status: HTTP status code (default 403)
        """
        self.reason_code = reason_code
        self.reason = reason
        self.lesson_id = lesson_id
        self.module_id = module_id
        self.user_tier = user_tier
        self.required_tier = required_tier
        self.http_status = http_status
        super().__init__(f"Lesson '{lesson_id}' denied: {reason}")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "error": "media_access_denied",
            "reason": self.reason,
            "lesson_id": self.lesson_id,
            "module_id": self.module_id,
            "user_tier": self.user_tier,
            "required_tier": self.required_tier,
            "machine_readable": {
                "code": self.reason_code,
                "upgrade_required": self.reason_code == self.INSUFFICIENT_LICENSE,
            },
        }


class MediaUnavailableError(EntitlementError):
    """Lesson has no video asset to sign."""

    def __init__(self, lesson_id: Optional[str]):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson '{lesson_id}' has no video asset")


class RoleDowngradeError(EntitlementError):
    """The lapse policy could not demote the subject account."""

    def __init__(self, subject_email: str, cause: Exception):
        self.subject_email = subject_email
        self.cause = cause
        super().__init__(f"Failed to demote '{subject_email}': {cause}")
