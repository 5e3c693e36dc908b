import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from kakeibo import config
from kakeibo.services.ledger_store import get_ledger_store
from kakeibo.services.salary_service import SalaryDistributionJob, SalaryRunError

logger = logging.getLogger(__name__)


async def run_daily_salaries():
    job = SalaryDistributionJob(get_ledger_store())
    try:
        result = await asyncio.to_thread(job.run)
    except SalaryRunError as e:
        logger.error(f"Scheduled salary run failed: {e}")
        return None
    for outcome in result.outcomes:
        if outcome.error and outcome.status.value != "skipped":
            logger.warning(f"Salary for user {outcome.user_id}: {outcome.status.value} ({outcome.error})")
    return result


def setup_jobs(tz: str = config.APP_TZ, hour: int = config.SALARY_SCHEDULE_HOUR) -> AsyncIOScheduler:
    """In-process alternative to an external cron hitting /api/cron/salary."""
    sch = AsyncIOScheduler(timezone=tz)
    sch.add_job(
        run_daily_salaries,
        CronTrigger(hour=hour, minute=0, timezone=tz),
        id="daily_salaries",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return sch
