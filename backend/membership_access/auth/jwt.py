"""
Supabase access token verification.

Supabase signs access tokens with HS256 using the project's JWT secret.
This module only verifies; it never issues tokens.

JWT Claims Used:
- sub: profile id
- aud: "authenticated" for signed-in users
- exp: Expiration timestamp
"""

import os
import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Security scheme for extracting Bearer token
security = HTTPBearer(auto_error=False)

DEFAULT_AUDIENCE = "authenticated"
CLOCK_SKEW_SECONDS = 30


class AuthenticationError(Exception):
    """Raised when an access token cannot be verified."""

    def __init__(self, message: str, error_code: str = "invalid_token"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class JWTConfig(BaseModel):
    """Configuration for access token verification."""
    secret: str = Field(..., min_length=1)
    audience: str = DEFAULT_AUDIENCE
    leeway_seconds: int = Field(CLOCK_SKEW_SECONDS, ge=0)


def load_jwt_config() -> JWTConfig:
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if not secret:
        raise ValueError("SUPABASE_JWT_SECRET environment variable is required")
    return JWTConfig(
        secret=secret,
        audience=os.getenv("SUPABASE_JWT_AUDIENCE", DEFAULT_AUDIENCE),
    )


class SupabaseTokenVerifier:
    """
    Verifies Supabase access tokens.

    Usage:
        verifier = SupabaseTokenVerifier()
        user_id = verifier.verify(token)
    """

    def __init__(self, config: Optional[JWTConfig] = None):
        self.config = config or load_jwt_config()

    def verify(self, token: str) -> str:
        """
        Verify a token and return its subject.

        Raises:
            AuthenticationError: Token is expired, malformed or wrongly signed
        """
        try:
            payload = jwt.decode(
                token,
                self.config.secret,
                algorithms=["HS256"],
                audience=self.config.audience,
                leeway=self.config.leeway_seconds,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Access token has expired", "token_expired")
        except jwt.InvalidAudienceError:
            raise AuthenticationError("Access token has invalid audience", "invalid_audience")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Access token is invalid: {e}")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Access token has no subject", "missing_subject")
        return subject


_verifier: Optional[SupabaseTokenVerifier] = None


def get_token_verifier() -> SupabaseTokenVerifier:
    """FastAPI dependency returning the process-wide verifier."""
    global _verifier
    if _verifier is None:
        try:
            _verifier = SupabaseTokenVerifier()
        except ValueError as e:
            logger.error("Token verifier not configured", extra={"error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication not configured",
            )
    return _verifier


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: SupabaseTokenVerifier = Depends(get_token_verifier),
) -> str:
    """FastAPI dependency: profile id of the authenticated caller."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return verifier.verify(credentials.credentials)
    except AuthenticationError as e:
        logger.warning("Access token rejected", extra={"error_code": e.error_code})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
