from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime
from kakeibo.database import Base


class User(Base):
    """Profile row; id is the Supabase Auth user id."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
