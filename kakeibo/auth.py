import hmac
import logging

from fastapi import Request, HTTPException, status
from jose import jwt, JWTError

from kakeibo import config
from kakeibo.services.session_cache import profile_cache
from kakeibo.supabase_rest import sb_select_one

logger = logging.getLogger(__name__)


def verify_token(token: str) -> dict | None:
    """Decode and verify a Supabase access token. Returns the payload or None on failure."""
    if not config.SUPABASE_JWT_SECRET:
        logger.error("SUPABASE_JWT_SECRET is not configured; rejecting token")
        return None
    try:
        return jwt.decode(
            token,
            config.SUPABASE_JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            audience=config.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        return None


def _bearer(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip()


async def get_current_user(request: Request) -> str:
    """
    FastAPI dependency: extracts the Bearer token from the Authorization
    header, verifies it, and returns the Supabase user id (the `sub` claim).
    Raises HTTP 401 if the token is missing or invalid.
    """
    token = _bearer(request)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token payload missing required claims",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def load_profile(user_id: str) -> dict | None:
    """Profile row for user_id, served from the cache when fresh."""
    profile = profile_cache.get(user_id)
    if profile is not None:
        return profile
    profile = sb_select_one("users", {"id": user_id})
    if profile is not None:
        profile_cache.set(user_id, profile)
    return profile


async def require_profile(request: Request) -> dict:
    """
    FastAPI dependency: an authenticated user who has completed profile setup.
    Raises 403 when the `users` row does not exist yet.
    """
    user_id = await get_current_user(request)
    try:
        profile = load_profile(user_id)
    except Exception as e:
        logger.error(f"Profile lookup failed for {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Profile lookup failed")

    if profile is None:
        raise HTTPException(status_code=403, detail="Profile setup required")
    return profile


async def verify_cron_secret(request: Request) -> None:
    """Guard for the salary trigger endpoints when CRON_SECRET is configured."""
    if not config.CRON_SECRET:
        return
    token = _bearer(request) or ""
    if not hmac.compare_digest(token, config.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
            headers={"WWW-Authenticate": "Bearer"},
        )
