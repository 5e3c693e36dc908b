from datetime import date as date_type
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from kakeibo.auth import require_profile
from kakeibo.services.clock import SystemClock
from kakeibo.services.finance_service import FinanceService
from kakeibo.supabase_rest import sb_select, sb_select_one, sb_insert, sb_update, sb_delete

router = APIRouter(prefix="/api/v1/finance", tags=["Finance"])


class TransactionCreate(BaseModel):
    type: Literal["income", "expense"]
    amount: int = Field(gt=0)
    category_id: Optional[int] = None
    category: Optional[str] = None
    date: date_type
    description: Optional[str] = None
    group_id: Optional[int] = None


class TransactionUpdate(BaseModel):
    type: Optional[Literal["income", "expense"]] = None
    amount: Optional[int] = Field(default=None, gt=0)
    category_id: Optional[int] = None
    category: Optional[str] = None
    date: Optional[date_type] = None
    description: Optional[str] = None


class BudgetSet(BaseModel):
    amount: int = Field(ge=0)


def _month_or_400(month: str) -> date_type:
    try:
        return FinanceService.parse_month(month)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid month: {month}")


def patch_fields(body: BaseModel, not_null: tuple) -> dict:
    """Fields the client sent; an explicit null on a NOT NULL column is dropped."""
    data = body.dict(exclude_unset=True)
    return {k: v for k, v in data.items() if v is not None or k not in not_null}


def category_names() -> dict:
    return {c["id"]: c["name"] for c in sb_select("categories", columns="id,name")}


def _month_ranges(month: Optional[str]) -> dict | None:
    if not month:
        return None
    start, end = FinanceService.month_window(_month_or_400(month))
    return {"date": (start.isoformat(), end.isoformat())}


# ── Transactions ──────────────────────────────────────────────────
@router.get("/transactions")
async def list_transactions(month: Optional[str] = None, profile: dict = Depends(require_profile)):
    ranges = _month_ranges(month)
    try:
        return sb_select("transactions", filters={"user_id": profile["id"]}, ranges=ranges, order="date.desc")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/transactions")
async def create_transaction(tx_data: TransactionCreate, profile: dict = Depends(require_profile)):
    try:
        data = tx_data.dict(exclude_unset=True)
        data["date"] = tx_data.date.isoformat()
        data["user_id"] = profile["id"]
        if tx_data.group_id is not None:
            member = sb_select_one("group_members", {"group_id": tx_data.group_id, "user_id": profile["id"]})
            if not member:
                raise HTTPException(status_code=403, detail="Not a member of this group")
        result = sb_insert("transactions", data)
        return {"status": "success", "data": result}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/transactions/{tx_id}")
async def update_transaction(tx_id: int, tx_data: TransactionUpdate, profile: dict = Depends(require_profile)):
    try:
        row = sb_select_one("transactions", {"id": tx_id, "user_id": profile["id"]})
        if not row:
            raise HTTPException(status_code=404, detail="Transaction not found")

        data = patch_fields(tx_data, ("type", "amount", "date"))
        if not data:
            return {"status": "success", "data": row}
        if data.get("date") is not None:
            data["date"] = data["date"].isoformat()

        result = sb_update("transactions", {"id": tx_id, "user_id": profile["id"]}, data)
        return {"status": "success", "data": result}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/transactions/{tx_id}")
async def delete_transaction(tx_id: int, profile: dict = Depends(require_profile)):
    try:
        row = sb_select_one("transactions", {"id": tx_id, "user_id": profile["id"]})
        if not row:
            raise HTTPException(status_code=404, detail="Transaction not found")

        sb_delete("transactions", {"id": tx_id, "user_id": profile["id"]})
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ── Budgets ───────────────────────────────────────────────────────
@router.get("/budgets/{month}")
async def get_budget(month: str, profile: dict = Depends(require_profile)):
    first = _month_or_400(month)
    try:
        budget = sb_select_one("budgets", {"user_id": profile["id"], "month": first.isoformat()})
        return {"month": first.isoformat(), "budget": budget}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/budgets/{month}")
async def set_budget(month: str, body: BudgetSet, profile: dict = Depends(require_profile)):
    """Create the month's budget or overwrite its amount."""
    first = _month_or_400(month)
    try:
        existing = sb_select_one("budgets", {"user_id": profile["id"], "month": first.isoformat()})
        if existing:
            result = sb_update("budgets", {"id": existing["id"]}, {"amount": body.amount})
        else:
            result = sb_insert("budgets", {"user_id": profile["id"], "month": first.isoformat(), "amount": body.amount})
        return {"status": "success", "data": result}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ── Summary ───────────────────────────────────────────────────────
@router.get("/summary")
async def finance_summary(month: Optional[str] = None, profile: dict = Depends(require_profile)):
    """Income, expense, category breakdown and remaining budget for one month."""
    first = _month_or_400(month) if month else SystemClock().today().replace(day=1)
    start, end = FinanceService.month_window(first)
    try:
        txs = sb_select(
            "transactions",
            filters={"user_id": profile["id"]},
            ranges={"date": (start.isoformat(), end.isoformat())},
        )
        budget = sb_select_one("budgets", {"user_id": profile["id"], "month": start.isoformat()})
        summary = FinanceService.summarize(
            txs,
            budget_amount=budget["amount"] if budget else None,
            category_names=category_names(),
        )
        return {"month": start.isoformat(), **summary}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
