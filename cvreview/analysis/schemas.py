"""Analysis request/response schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import AnalysisStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RegenerateRequest(_CamelModel):
    regenerate: bool = False


class CoverLetterUpdateRequest(_CamelModel):
    cover_letter: str = Field(..., min_length=1)


class HistoryItem(_CamelModel):
    """Minimal fields for the history list."""

    id: UUID
    job_title: str
    company: str
    score: int
    status: AnalysisStatus
    created_at: datetime | None = None


class AnalysisOut(HistoryItem):
    user_id: UUID
    job_description: str
    cv_text: str
    analysis_result: dict[str, Any]
    summary_options: Any = None
    cover_letter: str | None = None
    cover_letter_tips: Any = None
    cover_letter_source: str | None = None
    interview_questions: Any = None
    updated_at: datetime | None = None


def dump(model: type[_CamelModel], obj: Any) -> dict:
    return model.model_validate(obj).model_dump(mode="json", by_alias=True)
