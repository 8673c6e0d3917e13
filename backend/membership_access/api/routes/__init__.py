"""API routes."""
from membership_access.api.routes import health
from membership_access.api.routes import media
from membership_access.api.routes import access
from membership_access.api.routes import license_check

__all__ = ["health", "media", "access", "license_check"]
