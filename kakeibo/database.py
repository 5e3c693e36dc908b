import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from kakeibo.config import DATABASE_URL
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def make_engine(url: str = DATABASE_URL):
    """Build an engine with driver-appropriate settings."""
    engine_args = {}
    if url.startswith("sqlite"):
        # The salary job writes from worker threads
        engine_args["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        # Production settings for PostgreSQL
        engine_args.update({
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 1800,
        })
    return create_engine(url, echo=False, **engine_args)


try:
    engine = make_engine()
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
except Exception as e:
    logger.error(f"Failed to create engine: {e}")
    raise e

Base = declarative_base()


def init_db(bind=None):
    """Create the data/ directory if needed, then create all mirrored tables."""
    bind = bind or engine
    if str(bind.url).startswith("sqlite:///./"):
        os.makedirs("data", exist_ok=True)

    # Import all models so they register with Base.metadata
    import kakeibo.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind)
        seed_categories(bind)
        logger.info("Database initialized successfully.")
    except Exception as e:
        # A managed Postgres role may lack CREATE privileges; the schema is owned there
        logger.error(f"Error during database initialization: {e}")


def seed_categories(bind):
    """Insert the salary category the distribution job tags income with."""
    from kakeibo.config import SALARY_CATEGORY_ID
    from kakeibo.models.category import Category

    Session = sessionmaker(bind=bind)
    with Session() as db:
        if db.get(Category, SALARY_CATEGORY_ID) is None:
            db.add(Category(id=SALARY_CATEGORY_ID, name="salary", type="income"))
            db.commit()
