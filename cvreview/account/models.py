"""Notification preference model (one row per user, created lazily)."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base

PREFERENCE_DEFAULTS = {
    "email_updates": True,
    "analysis_complete": True,
    "weekly_tips": False,
    "promotions": True,
}


class UserPreference(Base):
    __tablename__ = "user_preferences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    email_updates = Column(Boolean, nullable=False, default=True)
    analysis_complete = Column(Boolean, nullable=False, default=True)
    weekly_tips = Column(Boolean, nullable=False, default=False)
    promotions = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="preferences")
