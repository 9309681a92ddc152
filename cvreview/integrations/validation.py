"""Pydantic schemas for structured AI responses.

These models are both the contract sent to the provider (their JSON schema
becomes the tool input schema) and the validator applied to what comes back.
Field names are snake_case in Python and camelCase on the wire.
"""

import enum
from collections import Counter
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..analysis.models import AnalysisStatus


class _AIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _round_score(v: object) -> object:
    """Accept 85.0 or "85" for an integer score; range is still enforced."""
    if isinstance(v, float):
        return round(v)
    if isinstance(v, str):
        try:
            return round(float(v.strip()))
        except ValueError:
            return v
    return v


Score = Annotated[int, BeforeValidator(_round_score), Field(ge=0, le=100)]


# ── Analysis ──────────────────────────────────────────────────────────


class SectionScore(_AIModel):
    score: Score
    feedback: str


class AnalysisSections(_AIModel):
    format: SectionScore
    content: SectionScore
    keywords: SectionScore
    experience: SectionScore


class KeywordSets(_AIModel):
    found: list[str] = Field(..., description="Keywords from the job description found in the CV")
    missing: list[str] = Field(..., description="Important job-description keywords missing from the CV")


class AnalysisAIResponse(_AIModel):
    score: Score = Field(..., description="Match score from 0 to 100")
    status: AnalysisStatus = Field(..., description="Overall status of the CV")
    job_title: str = Field(..., description="Job title extracted or inferred from the CV or job description")
    company: str = Field(..., description="Company name from the job description, or the target company")
    job_description_summary: str = Field(..., description="Concise summary of the job description, max 3 sentences")
    strengths: list[str]
    weaknesses: list[str]
    suggestions: list[str]
    keywords: KeywordSets
    sections: AnalysisSections

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower().replace("_", "-").replace(" ", "-")
        return v


# ── Summary options ───────────────────────────────────────────────────


class SummaryAIResponse(_AIModel):
    options: list[str] = Field(
        ...,
        min_length=3,
        max_length=3,
        description="Three summary options: professional, achievement based, creative (in that order)",
    )

    @field_validator("options")
    @classmethod
    def distinct_options(cls, v: list[str]) -> list[str]:
        if any(not o.strip() for o in v):
            raise ValueError("summary options must not be empty")
        if len({o.strip().casefold() for o in v}) != len(v):
            raise ValueError("summary options must be distinct")
        return v


# ── Cover letter ──────────────────────────────────────────────────────


class CoverLetterTips(_AIModel):
    strengths: list[str] = Field(
        ...,
        min_length=4,
        max_length=4,
        description="4 strong points about this specific cover letter",
    )


class CoverLetterAIResponse(_AIModel):
    cover_letter: str = Field(..., min_length=1, description="The complete cover letter text")
    tips: CoverLetterTips


# ── Interview pack ────────────────────────────────────────────────────


class QuestionCategory(enum.StrEnum):
    BEHAVIORAL = "behavioral"
    TECHNICAL = "technical"
    COMPANY = "company"


QUESTION_DISTRIBUTION = {
    QuestionCategory.BEHAVIORAL: 4,
    QuestionCategory.TECHNICAL: 4,
    QuestionCategory.COMPANY: 2,
}


class GoodAnswer(_AIModel):
    structure: str = Field(..., description="Recommended structure for the answer")
    key_points: list[str] = Field(..., description="Key points to cover")
    example: str = Field(..., description="A strong example answer")


class BadAnswer(_AIModel):
    examples: list[str] = Field(..., description="Examples of weak or bad answers")
    why_bad: list[str] = Field(..., description="Reasons why these answers are bad")


class InterviewQuestion(_AIModel):
    id: str = ""
    category: QuestionCategory
    question: str
    good_answer: GoodAnswer
    bad_answer: BadAnswer

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v


class InterviewAIResponse(_AIModel):
    questions: list[InterviewQuestion] = Field(..., min_length=10, max_length=10)

    @model_validator(mode="after")
    def check_distribution(self) -> "InterviewAIResponse":
        counts = Counter(q.category for q in self.questions)
        if any(counts.get(cat, 0) != n for cat, n in QUESTION_DISTRIBUTION.items()):
            raise ValueError(f"expected 4 behavioral, 4 technical, 2 company questions, got {dict(counts)}")
        return self
