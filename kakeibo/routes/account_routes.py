from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from kakeibo.auth import get_current_user, require_profile
from kakeibo.services.session_cache import profile_cache
from kakeibo.supabase_client import upload_avatar
from kakeibo.supabase_rest import sb_select_one, sb_insert, sb_update

router = APIRouter(prefix="/api/v1/account", tags=["Account"])

MAX_AVATAR_BYTES = 2 * 1024 * 1024


class ProfileUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = None
    avatar_url: Optional[str] = None


@router.get("/me")
async def me(profile: dict = Depends(require_profile)):
    return profile


@router.put("/profile")
async def setup_profile(body: ProfileUpdate, user_id: str = Depends(get_current_user)):
    """Create the profile row on first setup, update it afterwards."""
    try:
        data = body.dict(exclude_unset=True)
        existing = sb_select_one("users", {"id": user_id})
        if existing:
            result = sb_update("users", {"id": user_id}, data)
        else:
            result = sb_insert("users", {"id": user_id, **data})
        profile_cache.invalidate(user_id)
        return {"status": "success", "data": result}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/avatar")
async def change_avatar(file: UploadFile = File(...), profile: dict = Depends(require_profile)):
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Avatar must be an image")
    content = await file.read()
    if len(content) > MAX_AVATAR_BYTES:
        raise HTTPException(status_code=413, detail="Avatar is larger than 2 MB")

    try:
        url = await run_in_threadpool(upload_avatar, profile["id"], file.filename or "avatar.png", content, file.content_type)
        sb_update("users", {"id": profile["id"]}, {"avatar_url": url})
        profile_cache.invalidate(profile["id"])
        return {"status": "success", "avatar_url": url}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
