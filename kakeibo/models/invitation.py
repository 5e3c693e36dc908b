from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from kakeibo.database import Base


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inviter_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    invitee_email = Column(String(255), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    token = Column(String(64), unique=True, nullable=False)
    status = Column(String(20), default="pending")  # pending/accepted
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
