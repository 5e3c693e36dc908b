"""
Group routes: groups, members, shared budgets and member salaries.
Membership and role are checked here before every write; the store is
accessed with the service-role key.
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from kakeibo.auth import require_profile
from kakeibo.routes.finance_routes import category_names
from kakeibo.services.clock import SystemClock
from kakeibo.services.finance_service import FinanceService
from kakeibo.supabase_rest import sb_select, sb_select_one, sb_insert, sb_update, sb_delete

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/groups", tags=["Groups"])


# ── Pydantic schemas ──────────────────────────────────────────────
class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class MemberAdd(BaseModel):
    user_id: str
    role: Literal["owner", "member"] = "member"


class GroupBudgetCreate(BaseModel):
    category: str = Field(min_length=1)
    amount: int = Field(gt=0)
    month: Optional[str] = None


class MemberSalarySet(BaseModel):
    amount: int = Field(gt=0)
    payday: int = Field(ge=1, le=31)


# ── Membership checks ─────────────────────────────────────────────
def _membership(group_id: int, user_id: str) -> dict | None:
    return sb_select_one("group_members", {"group_id": group_id, "user_id": user_id})


def _require_member(group_id: int, user_id: str) -> dict:
    member = _membership(group_id, user_id)
    if not member:
        raise HTTPException(status_code=403, detail="Not a member of this group")
    return member


def _require_owner(group_id: int, user_id: str) -> dict:
    member = _require_member(group_id, user_id)
    if member.get("role") != "owner":
        raise HTTPException(status_code=403, detail="Only the group owner can do this")
    return member


def _in_list(column: str, values) -> str:
    return f"{column}=in.({','.join(str(v) for v in values)})"


# ── Groups ────────────────────────────────────────────────────────
@router.post("")
async def create_group(body: GroupCreate, profile: dict = Depends(require_profile)):
    """Create a group; the creator joins it as owner."""
    try:
        group = sb_insert("groups", {
            "name": body.name,
            "description": body.description,
            "created_by": profile["id"],
        })
        try:
            sb_insert("group_members", {"group_id": group["id"], "user_id": profile["id"], "role": "owner"})
        except Exception as e:
            logger.error(f"Error adding creator to group_members for group {group.get('id')}: {e}")
        return group
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("")
async def list_groups(profile: dict = Depends(require_profile)):
    """Groups the user belongs to, each with its member list."""
    try:
        memberships = sb_select("group_members", filters={"user_id": profile["id"]})
        group_ids = sorted({m["group_id"] for m in memberships})
        if not group_ids:
            return []

        groups = sb_select("groups", query_string=_in_list("id", group_ids), order="id.asc")
        members = sb_select("group_members", query_string=_in_list("group_id", group_ids))
        user_ids = sorted({m["user_id"] for m in members})
        names = {}
        if user_ids:
            users = sb_select("users", columns="id,name", query_string=_in_list("id", user_ids))
            names = {u["id"]: u.get("name") or "" for u in users}

        return [
            {
                **g,
                "members": [
                    {"user_id": m["user_id"], "name": names.get(m["user_id"], ""), "role": m.get("role")}
                    for m in members if m["group_id"] == g["id"]
                ],
            }
            for g in groups
        ]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{group_id}")
async def delete_group(group_id: int, profile: dict = Depends(require_profile)):
    try:
        _require_owner(group_id, profile["id"])
        sb_delete("group_members", {"group_id": group_id})
        sb_delete("groups", {"id": group_id})
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ── Members ───────────────────────────────────────────────────────
@router.post("/{group_id}/members")
async def add_member(group_id: int, body: MemberAdd, profile: dict = Depends(require_profile)):
    try:
        _require_owner(group_id, profile["id"])
        if not sb_select_one("users", {"id": body.user_id}, columns="id"):
            raise HTTPException(status_code=404, detail="User not found")
        if _membership(group_id, body.user_id):
            raise HTTPException(status_code=409, detail="Already a member")

        member = sb_insert("group_members", {"group_id": group_id, "user_id": body.user_id, "role": body.role})
        return {"status": "success", "data": member}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{group_id}/members/{user_id}")
async def remove_member(group_id: int, user_id: str, profile: dict = Depends(require_profile)):
    """Owners remove anyone; members may only leave themselves."""
    try:
        if user_id != profile["id"]:
            _require_owner(group_id, profile["id"])
        if not _membership(group_id, user_id):
            raise HTTPException(status_code=404, detail="Member not found")

        sb_delete("group_members", {"group_id": group_id, "user_id": user_id})
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ── Group budgets ─────────────────────────────────────────────────
@router.post("/{group_id}/budgets")
async def create_group_budget(group_id: int, body: GroupBudgetCreate, profile: dict = Depends(require_profile)):
    try:
        _require_member(group_id, profile["id"])
        data = {
            "group_id": group_id,
            "category": body.category,
            "amount": body.amount,
            "created_by": profile["id"],
        }
        if body.month:
            try:
                data["month"] = FinanceService.parse_month(body.month).isoformat()
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Invalid month: {body.month}")
        budget = sb_insert("group_budgets", data)
        return {"budget": budget}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{group_id}/budgets")
async def list_group_budgets(group_id: int, profile: dict = Depends(require_profile)):
    try:
        _require_member(group_id, profile["id"])
        budgets = sb_select("group_budgets", filters={"group_id": group_id}, order="id.asc")
        return {"budgets": budgets}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{group_id}/budgets/{budget_id}")
async def delete_group_budget(group_id: int, budget_id: int, profile: dict = Depends(require_profile)):
    """The owner, or whoever created the budget, may delete it."""
    try:
        member = _require_member(group_id, profile["id"])
        budget = sb_select_one("group_budgets", {"id": budget_id, "group_id": group_id})
        if not budget:
            raise HTTPException(status_code=404, detail="Budget not found")
        if member.get("role") != "owner" and budget.get("created_by") != profile["id"]:
            raise HTTPException(status_code=403, detail="Only the owner or the creator can delete this budget")

        sb_delete("group_budgets", {"id": budget_id})
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{group_id}/summary")
async def group_summary(group_id: int, month: Optional[str] = None, profile: dict = Depends(require_profile)):
    """Month summary over the group ledger against the salary-fed group budget."""
    _require_member(group_id, profile["id"])
    try:
        first = FinanceService.parse_month(month) if month else SystemClock().today().replace(day=1)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid month: {month}")
    start, end = FinanceService.month_window(first)
    try:
        txs = sb_select(
            "transactions",
            filters={"group_id": group_id},
            ranges={"date": (start.isoformat(), end.isoformat())},
        )
        budget = sb_select_one("group_budgets", {"group_id": group_id, "month": start.isoformat(), "category": None})
        summary = FinanceService.summarize(
            txs,
            budget_amount=budget["amount"] if budget else None,
            category_names=category_names(),
        )
        return {"group_id": group_id, "month": start.isoformat(), **summary}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ── Member salaries ───────────────────────────────────────────────
@router.get("/{group_id}/salaries")
async def list_member_salaries(group_id: int, profile: dict = Depends(require_profile)):
    try:
        _require_member(group_id, profile["id"])
        members = sb_select("group_members", filters={"group_id": group_id})
        user_ids = [m["user_id"] for m in members]
        if not user_ids:
            return []
        salaries = sb_select("salaries", query_string=_in_list("user_id", user_ids), order="id.asc")
        by_user = {}
        for s in salaries:
            by_user.setdefault(s["user_id"], s)
        return [
            {"user_id": m["user_id"], "role": m.get("role"), "salary": by_user.get(m["user_id"])}
            for m in members
        ]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{group_id}/salaries/{user_id}")
async def set_member_salary(group_id: int, user_id: str, body: MemberSalarySet, profile: dict = Depends(require_profile)):
    """Owners set any member's salary; members set their own."""
    try:
        if user_id != profile["id"]:
            _require_owner(group_id, profile["id"])
        else:
            _require_member(group_id, user_id)
        if not _membership(group_id, user_id):
            raise HTTPException(status_code=404, detail="Member not found")

        existing = sb_select_one("salaries", {"user_id": user_id})
        data = {"amount": body.amount, "payday": body.payday, "group_id": group_id}
        if existing:
            result = sb_update("salaries", {"id": existing["id"]}, data)
        else:
            result = sb_insert("salaries", {
                **data,
                "user_id": user_id,
                "last_paid": SystemClock().today().isoformat(),
                "status": "unconfirmed",
            })
        return {"status": "success", "data": result}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
