"""Analysis record model and enums."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class AnalysisStatus(enum.StrEnum):
    """Coarse verdict on how well the CV fits the job."""

    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs-improvement"


class CoverLetterSource(enum.StrEnum):
    GENERATED = "generated"
    EDITED = "edited"


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_title = Column(String(255), nullable=False, default="Unknown Position")
    company = Column(String(255), nullable=False, default="Unknown Company")
    job_description = Column(Text, nullable=False)
    cv_text = Column(Text, nullable=False)

    score = Column(Integer, nullable=False, default=0)
    status = Column(
        SQLEnum(AnalysisStatus, values_callable=lambda e: [s.value for s in e], name="analysis_status"),
        nullable=False,
        default=AnalysisStatus.NEEDS_IMPROVEMENT,
    )
    analysis_result = Column(JSON, nullable=False)

    # Optional artifacts, generated on demand against the same record
    summary_options = Column(JSON, nullable=True)
    cover_letter = Column(Text, nullable=True)
    cover_letter_tips = Column(JSON, nullable=True)
    cover_letter_source = Column(String(20), nullable=True)
    interview_questions = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    user = relationship("User", back_populates="analyses")

    __table_args__ = (
        Index("idx_analyses_user_created", "user_id", "created_at"),
    )
