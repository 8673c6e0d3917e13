"""
Access grant reconciliation routes.

Handles:
- Reconciling the caller's own grants after a license change
- Reconciling any member's grants (administrators only)

Grants are only ever added here.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from membership_access.auth.jwt import get_current_user_id
from membership_access.database.session import get_db_session
from membership_access.models.profile import ADMINISTRATIVE_ROLES
from membership_access.repositories.profiles_repo import ProfileRepository
from membership_access.services.access_reconciler import (
    AccessGrantReconciler,
    ProfileNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/access", tags=["access"])


class ReconcileRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Profile to reconcile")


def require_admin(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
) -> str:
    """Allow only callers whose profile role is administrative."""
    profile = ProfileRepository(db).get_by_id(user_id)
    if profile is None or profile.role not in ADMINISTRATIVE_ROLES:
        logger.warning("Reconcile denied for non-admin caller", extra={"user_id": user_id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user_id


def _reconcile(db: Session, user_id: str) -> dict:
    try:
        result = AccessGrantReconciler(db).reconcile_user(user_id)
    except ProfileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    db.commit()
    return result.to_dict()


@router.post("/reconcile/me")
def reconcile_me(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
):
    """Add any grants the caller's license entitles them to."""
    return _reconcile(db, user_id)


@router.post("/reconcile")
def reconcile_user(
    request: ReconcileRequest,
    admin_id: str = Depends(require_admin),
    db: Session = Depends(get_db_session),
):
    """Add any grants a member's license entitles them to."""
    logger.info(
        "Admin reconcile requested",
        extra={"admin_id": admin_id, "user_id": request.user_id},
    )
    return _reconcile(db, request.user_id)
