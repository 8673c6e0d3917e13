"""
Developer license trigger routes.

Handles:
- Scheduled license check (cron calls this daily)
- Renewal after payment

Security:
- Shared secret from LICENSE_CHECK_SECRET_KEY, sent as a Bearer token or
  in the X-Secret-Key header
- No secret configured means the endpoints are open
"""

import hmac
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from membership_access.database.session import get_db_session
from membership_access.entitlements.errors import RoleDowngradeError
from membership_access.services.license_expiry_service import (
    LicenseCheckResult,
    LicenseExpiryService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/license", tags=["license"])


class RenewRequest(BaseModel):
    auto_renewal: bool = False
    restore_role: bool = False


def verify_trigger_secret(
    authorization: Optional[str] = Header(None),
    x_secret_key: Optional[str] = Header(None),
) -> None:
    """Reject the call unless it presents the configured shared secret."""
    expected = os.getenv("LICENSE_CHECK_SECRET_KEY")
    if not expected:
        return

    provided = x_secret_key
    if authorization and authorization.startswith("Bearer "):
        provided = authorization[len("Bearer "):]

    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("License trigger rejected: bad secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def get_service(db: Session = Depends(get_db_session)) -> LicenseExpiryService:
    try:
        return LicenseExpiryService(db)
    except ValueError as e:
        logger.error("License check not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="License check not configured",
        )


@router.post("/check", response_model=LicenseCheckResult)
def check_license(
    _secret=Depends(verify_trigger_secret),
    service: LicenseExpiryService = Depends(get_service),
):
    """Run one pass of the lapse policy and report the license status."""
    try:
        return service.run_check()
    except RoleDowngradeError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "role_downgrade_failed", "detail": str(e)},
        )


@router.post("/renew", response_model=LicenseCheckResult)
def renew_license(
    request: Optional[RenewRequest] = None,
    _secret=Depends(verify_trigger_secret),
    service: LicenseExpiryService = Depends(get_service),
):
    """Mark the license as paid and reset the lapse clock."""
    request = request or RenewRequest()
    return service.renew(
        auto_renewal=request.auto_renewal,
        restore_role=request.restore_role,
    )
