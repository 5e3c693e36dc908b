"""
Salary trigger endpoints. Called once a day by the platform scheduler, or by
an operator with an explicit date.
"""
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool

from kakeibo.auth import verify_cron_secret
from kakeibo.services.ledger_store import get_ledger_store
from kakeibo.services.salary_service import SalaryDistributionJob, SalaryRunError

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


def get_salary_job() -> SalaryDistributionJob:
    return SalaryDistributionJob(get_ledger_store())


def parse_target_date(value: str) -> date:
    """Accepts an ISO date or an ISO datetime (the date part is used)."""
    value = value.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


@router.get("/salary")
async def run_salary(job: SalaryDistributionJob = Depends(get_salary_job)):
    """Distribute every salary whose payday is today."""
    try:
        result = await run_in_threadpool(job.run)
    except SalaryRunError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return result.to_dict()


@router.get("/salary/test")
async def run_salary_for_date(
    date: str = Query(..., description="ISO date to run the distribution for"),
    job: SalaryDistributionJob = Depends(get_salary_job),
):
    """Manual run for a given date; also stamps last_paid on each processed rule."""
    try:
        target = parse_target_date(date)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {date}")

    try:
        result = await run_in_threadpool(job.run, target, True)
    except SalaryRunError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "success": True,
        "testDate": target.isoformat(),
        "processedSalaries": result.details(),
    }
