from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from kakeibo.auth import require_profile
from kakeibo.routes.finance_routes import patch_fields
from kakeibo.services.clock import SystemClock
from kakeibo.supabase_rest import sb_select, sb_select_one, sb_insert, sb_update, sb_delete

router = APIRouter(prefix="/api/v1/salaries", tags=["Salaries"])


class SalaryCreate(BaseModel):
    amount: int = Field(gt=0)
    payday: int = Field(ge=1, le=31)
    group_id: Optional[int] = None
    special_amount: Optional[int] = Field(default=None, ge=0)
    is_paid: bool = False


class SalaryUpdate(BaseModel):
    amount: Optional[int] = Field(default=None, gt=0)
    payday: Optional[int] = Field(default=None, ge=1, le=31)
    group_id: Optional[int] = None
    special_amount: Optional[int] = Field(default=None, ge=0)
    is_paid: Optional[bool] = None


@router.get("")
async def list_salaries(profile: dict = Depends(require_profile)):
    try:
        return sb_select("salaries", filters={"user_id": profile["id"]}, order="created_at.desc")
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("")
async def create_salary(body: SalaryCreate, profile: dict = Depends(require_profile)):
    """Register a recurring salary. last_paid starts at today so it is not paid retroactively."""
    try:
        data = body.dict()
        data.update({
            "user_id": profile["id"],
            "last_paid": SystemClock().today().isoformat(),
            "status": "unconfirmed",
        })
        result = sb_insert("salaries", data)
        return {"status": "success", "data": result}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/{salary_id}")
async def update_salary(salary_id: int, body: SalaryUpdate, profile: dict = Depends(require_profile)):
    try:
        row = sb_select_one("salaries", {"id": salary_id, "user_id": profile["id"]})
        if not row:
            raise HTTPException(status_code=404, detail="Salary not found")

        data = patch_fields(body, ("amount", "payday", "is_paid"))
        if not data:
            return {"status": "success", "data": row}

        result = sb_update("salaries", {"id": salary_id}, data)
        return {"status": "success", "data": result}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{salary_id}")
async def delete_salary(salary_id: int, profile: dict = Depends(require_profile)):
    try:
        row = sb_select_one("salaries", {"id": salary_id, "user_id": profile["id"]})
        if not row:
            raise HTTPException(status_code=404, detail="Salary not found")

        sb_delete("salaries", {"id": salary_id})
        return {"status": "success"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
