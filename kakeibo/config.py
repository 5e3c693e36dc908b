import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- Supabase Configuration ---
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
# Secret Supabase Auth signs access tokens with (Project Settings -> API -> JWT Secret)
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
JWT_ALGORITHM = "HS256"
AVATAR_BUCKET = os.getenv("AVATAR_BUCKET", "avatars")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

# --- Database ---
# Local mirror of the Supabase schema, used when SUPABASE_URL is not set
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/kakeibo.db")

# Fix for common SQLAlchemy issues with postgres:// vs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- Application ---
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
APP_TZ = os.getenv("APP_TZ", "UTC")
PROFILE_CACHE_TTL = int(os.getenv("PROFILE_CACHE_TTL", "300"))  # seconds
INVITATION_TTL_DAYS = int(os.getenv("INVITATION_TTL_DAYS", "7"))
DEBUG_ROUTES_ENABLED = _flag("DEBUG_ROUTES_ENABLED")

# --- Salary distribution ---
CRON_SECRET = os.getenv("CRON_SECRET", "")
SALARY_CATEGORY_ID = int(os.getenv("SALARY_CATEGORY_ID", "1"))
SALARY_DESCRIPTION = os.getenv("SALARY_DESCRIPTION", "salary")
SALARY_MAX_WORKERS = max(1, int(os.getenv("SALARY_MAX_WORKERS", "4")))
SALARY_CLAMP_MONTH_END = _flag("SALARY_CLAMP_MONTH_END")
SALARY_SCHEDULER_ENABLED = _flag("SALARY_SCHEDULER_ENABLED")
SALARY_SCHEDULE_HOUR = int(os.getenv("SALARY_SCHEDULE_HOUR", "0"))
