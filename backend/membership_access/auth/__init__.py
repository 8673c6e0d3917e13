"""
Caller authentication.

Members sign in through Supabase; requests carry the Supabase access
token as a Bearer JWT and the profile id in its sub claim.
"""

from membership_access.auth.jwt import (
    AuthenticationError,
    JWTConfig,
    SupabaseTokenVerifier,
    get_current_user_id,
)

__all__ = [
    "AuthenticationError",
    "JWTConfig",
    "SupabaseTokenVerifier",
    "get_current_user_id",
]
