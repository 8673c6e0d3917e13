"""
Media token API routes.

Handles:
- Signed playback URL issuance for lesson videos

Security:
- Requires a verified caller JWT; the caller's profile is reloaded from
  the database so license and role are never taken from the token
- Entitlement is re-checked on every request; grants on file are not
  consulted
- Denials are returned as structured 403 bodies and audited
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from membership_access.auth.jwt import get_current_user_id
from membership_access.database.session import get_db_session
from membership_access.entitlements.errors import MediaAccessDeniedError, MediaUnavailableError
from membership_access.repositories.catalog_repo import CatalogRepository
from membership_access.repositories.profiles_repo import ProfileRepository
from membership_access.services.media_token_service import (
    MediaTokenService,
    get_media_token_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/media", tags=["media"])


class MediaTokenRequest(BaseModel):
    """Request for a signed playback URL."""
    lesson_id: str = Field(..., min_length=1, description="Lesson to play")
    ttl_seconds: Optional[int] = Field(None, description="Token lifetime, capped server side")


class MediaTokenResponse(BaseModel):
    """Signed playback reference."""
    video_id: str
    embed_url: str
    token: str
    expires: int


def get_service() -> MediaTokenService:
    """Dependency to get media token service."""
    try:
        return get_media_token_service()
    except ValueError as e:
        logger.error("Media token service not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Video playback not configured",
        )


@router.post("/token", response_model=MediaTokenResponse)
def issue_media_token(
    token_request: MediaTokenRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
    service: MediaTokenService = Depends(get_service),
):
    """Issue a signed, expiring playback URL for one lesson."""
    caller = ProfileRepository(db).get_by_id(user_id)
    if caller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

    catalog = CatalogRepository(db)
    lesson = catalog.get_lesson(token_request.lesson_id)
    if lesson is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    module = catalog.get_module(lesson.module_id)

    try:
        result = service.issue_token(
            caller=caller,
            lesson=lesson,
            module=module,
            ttl_seconds=token_request.ttl_seconds,
        )
    except MediaAccessDeniedError as e:
        return JSONResponse(status_code=e.http_status, content=e.to_dict())
    except MediaUnavailableError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson has no video")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return MediaTokenResponse(
        video_id=result.video_id,
        embed_url=result.embed_url,
        token=result.token,
        expires=result.expires,
    )
