"""
Debug resets for a development project. Mounted only when
DEBUG_ROUTES_ENABLED is set.
"""
from fastapi import APIRouter, Depends, HTTPException

from kakeibo import config
from kakeibo.auth import require_profile
from kakeibo.supabase_rest import sb_delete

router = APIRouter(prefix="/api/v1/debug", tags=["Debug"])


@router.post("/reset-budgets")
async def reset_group_budgets(profile: dict = Depends(require_profile)):
    """Delete every group budget row."""
    try:
        sb_delete("group_budgets", query_string="id=neq.0")
        return {"message": "Group budgets reset successfully"}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/reset-transactions")
async def reset_salary_transactions(profile: dict = Depends(require_profile)):
    """Delete the transactions written by the salary job."""
    try:
        sb_delete("transactions", {"description": config.SALARY_DESCRIPTION})
        return {"message": "Salary transactions reset successfully"}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
