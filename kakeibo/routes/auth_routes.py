# ---------- routes/auth_routes.py ----------
"""
Auth routes: thin pass-through to Supabase Auth.
Tokens returned here are the Supabase access tokens the API expects as Bearer.
"""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from kakeibo.supabase_client import sign_in_user, sign_up_user, resend_confirmation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


# ── Pydantic schemas ──────────────────────────────────────────────
class AuthRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)


class ResendRequest(BaseModel):
    email: str = Field(min_length=3)


def _session_payload(resp) -> dict:
    session = getattr(resp, "session", None)
    user = getattr(resp, "user", None)
    return {
        "user_id": user.id if user else None,
        "access_token": session.access_token if session else None,
        "refresh_token": session.refresh_token if session else None,
        "expires_at": session.expires_at if session else None,
    }


# ── Routes ────────────────────────────────────────────────────────
@router.post("/signup")
async def signup(body: AuthRequest):
    """Register; Supabase sends the confirmation mail."""
    try:
        resp = await run_in_threadpool(sign_up_user, body.email, body.password)
        return {"status": "success", "data": _session_payload(resp)}
    except Exception as e:
        logger.warning(f"Sign-up failed for {body.email}: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/login")
async def login(body: AuthRequest):
    try:
        resp = await run_in_threadpool(sign_in_user, body.email, body.password)
    except Exception as e:
        logger.info(f"Login failed for {body.email}: {e}")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"status": "success", "data": _session_payload(resp)}


@router.post("/resend")
async def resend(body: ResendRequest):
    try:
        await run_in_threadpool(resend_confirmation, body.email)
        return {"status": "success"}
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))
