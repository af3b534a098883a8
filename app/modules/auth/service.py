import hashlib
import time
from supabase import Client
from app.core.exceptions import UnauthenticatedError
from fastapi import HTTPException
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel permission checks with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    """Resolves a Supabase Auth bearer token to an opaque user identity."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        if not token:
            raise UnauthenticatedError("Missing bearer token")
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise UnauthenticatedError("Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            logger.info(f"Token verification failed: {error_msg}")
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise UnauthenticatedError("Invalid or expired token")
            raise UnauthenticatedError("Authentication failed")
