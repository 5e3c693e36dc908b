from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, ForeignKey
from kakeibo.database import Base


class Salary(Base):
    __tablename__ = "salaries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # minor currency unit
    payday = Column(Integer, nullable=False, index=True)  # day of month, 1-31
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    special_amount = Column(Integer, nullable=True)
    is_paid = Column(Boolean, default=False)
    status = Column(String(20), default="unconfirmed")
    last_paid = Column(Date, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
