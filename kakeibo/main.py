import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kakeibo import config
from kakeibo.database import init_db
from kakeibo.supabase_client import is_supabase_configured
from kakeibo.routes.account_routes import router as account_router
from kakeibo.routes.auth_routes import router as auth_router
from kakeibo.routes.cron_routes import router as cron_router
from kakeibo.routes.debug_routes import router as debug_router
from kakeibo.routes.finance_routes import router as finance_router
from kakeibo.routes.group_routes import router as group_router
from kakeibo.routes.invite_routes import router as invite_router
from kakeibo.routes.salary_routes import router as salary_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The Supabase schema is owned by the hosted project; only the local mirror is created here
    if not is_supabase_configured():
        try:
            init_db()
        except Exception as e:
            logger.error(f"Database init skipped or failed: {e}")

    scheduler = None
    if config.SALARY_SCHEDULER_ENABLED:
        from kakeibo.scheduler import setup_jobs
        scheduler = setup_jobs()
        scheduler.start()
        logger.info("Daily salary scheduler started")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)


app = FastAPI(title="Kakeibo", lifespan=lifespan)


@app.get("/api/v1/health-check")
async def health():
    return {
        "status": "ok",
        "backend": "supabase" if is_supabase_configured() else "local",
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(account_router)
app.include_router(finance_router)
app.include_router(salary_router)
app.include_router(group_router)
app.include_router(invite_router)
app.include_router(cron_router)
if config.DEBUG_ROUTES_ENABLED:
    app.include_router(debug_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kakeibo.main:app", host="0.0.0.0", port=8000, reload=True)
