import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from kakeibo import config
from kakeibo.auth import require_profile
from kakeibo.supabase_rest import sb_select_one, sb_insert, sb_update

router = APIRouter(prefix="/api/v1/invitations", tags=["Invitations"])


class InvitationCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    group_id: Optional[int] = None


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _usable_invitation(token: str) -> dict:
    """Pending, unexpired invitation for token, or the matching HTTP error."""
    invitation = sb_select_one("invitations", {"token": token})
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invitation.get("status") != "pending":
        raise HTTPException(status_code=410, detail="Invitation already used")
    if _parse_ts(invitation["expires_at"]) < datetime.now(timezone.utc):
        raise HTTPException(status_code=410, detail="Invitation expired")
    return invitation


@router.post("")
async def create_invitation(body: InvitationCreate, profile: dict = Depends(require_profile)):
    try:
        if body.group_id is not None:
            if not sb_select_one("group_members", {"group_id": body.group_id, "user_id": profile["id"]}):
                raise HTTPException(status_code=403, detail="Not a member of this group")

        token = secrets.token_hex(32)
        expires_at = datetime.now(timezone.utc) + timedelta(days=config.INVITATION_TTL_DAYS)
        sb_insert("invitations", {
            "inviter_id": profile["id"],
            "invitee_email": body.email.strip().lower(),
            "group_id": body.group_id,
            "token": token,
            "status": "pending",
            "expires_at": expires_at.isoformat(),
        })
        return {"inviteLink": f"{config.APP_URL}/invite/{token}", "expires_at": expires_at.isoformat()}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{token}")
async def check_invitation(token: str, profile: dict = Depends(require_profile)):
    try:
        invitation = _usable_invitation(token)
        return {
            "inviter_id": invitation["inviter_id"],
            "invitee_email": invitation["invitee_email"],
            "group_id": invitation.get("group_id"),
            "expires_at": invitation["expires_at"],
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{token}/accept")
async def accept_invitation(token: str, profile: dict = Depends(require_profile)):
    """Mark the invitation accepted and join its group, if it names one."""
    try:
        invitation = _usable_invitation(token)
        email = (profile.get("email") or "").strip().lower()
        if not email:
            raise HTTPException(status_code=403, detail="Add the invited email address to your profile first")
        if email != invitation["invitee_email"].lower():
            raise HTTPException(status_code=403, detail="This invitation was sent to a different address")

        sb_update("invitations", {"token": token}, {"status": "accepted"})

        group_id = invitation.get("group_id")
        if group_id is not None and not sb_select_one("group_members", {"group_id": group_id, "user_id": profile["id"]}):
            sb_insert("group_members", {"group_id": group_id, "user_id": profile["id"], "role": "member"})
        return {"status": "success", "group_id": group_id}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
