"""Artifact kinds and their generation specs.

Each kind pairs a response schema with a prompt template; the generator is a
single operation parameterised by one of these specs.
"""

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel

from ..config import settings
from ..integrations.validation import (
    AnalysisAIResponse,
    CoverLetterAIResponse,
    InterviewAIResponse,
    SummaryAIResponse,
)
from ..prompts import ANALYSIS_PROMPT, COVER_LETTER_PROMPT, INTERVIEW_PROMPT, SUMMARY_PROMPT


class ArtifactKind(enum.StrEnum):
    ANALYSIS = "analysis"
    SUMMARY = "summary"
    COVER_LETTER = "cover_letter"
    INTERVIEW = "interview"


@dataclass(frozen=True)
class PromptContext:
    """Inputs drawn from the submission or the stored analysis record."""

    job_description: str
    cv_text: str
    company: str = ""
    job_title: str = ""


def _unchanged(result: dict) -> dict:
    return result


def number_questions(result: dict) -> dict:
    """Assign stable sequential ids; provider-supplied ids are not trusted."""
    for i, question in enumerate(result.get("questions", []), start=1):
        question["id"] = f"q-{i}"
    return result


@dataclass(frozen=True)
class ArtifactSpec:
    kind: ArtifactKind
    schema: type[BaseModel]
    tool_name: str
    description: str
    prompt_template: str
    max_tokens: int
    finalize: Callable[[dict], dict] = _unchanged

    def build_prompt(self, ctx: PromptContext) -> str:
        return self.prompt_template.format(
            language=settings.output_language,
            job_description=ctx.job_description,
            cv_text=ctx.cv_text,
            company=ctx.company,
            job_title=ctx.job_title,
        )


ARTIFACTS: dict[ArtifactKind, ArtifactSpec] = {
    ArtifactKind.ANALYSIS: ArtifactSpec(
        kind=ArtifactKind.ANALYSIS,
        schema=AnalysisAIResponse,
        tool_name="record_cv_analysis",
        description="Record the structured analysis of a CV against a job description.",
        prompt_template=ANALYSIS_PROMPT,
        max_tokens=4096,
    ),
    ArtifactKind.SUMMARY: ArtifactSpec(
        kind=ArtifactKind.SUMMARY,
        schema=SummaryAIResponse,
        tool_name="record_summary_options",
        description="Record three professional summary options for the CV.",
        prompt_template=SUMMARY_PROMPT,
        max_tokens=2048,
    ),
    ArtifactKind.COVER_LETTER: ArtifactSpec(
        kind=ArtifactKind.COVER_LETTER,
        schema=CoverLetterAIResponse,
        tool_name="record_cover_letter",
        description="Record a cover letter and four reasons it is effective.",
        prompt_template=COVER_LETTER_PROMPT,
        max_tokens=3072,
    ),
    ArtifactKind.INTERVIEW: ArtifactSpec(
        kind=ArtifactKind.INTERVIEW,
        schema=InterviewAIResponse,
        tool_name="record_interview_questions",
        description="Record ten interview questions with good and bad answer guides.",
        prompt_template=INTERVIEW_PROMPT,
        max_tokens=8192,
        finalize=number_questions,
    ),
}


class Generator(Protocol):
    """Turns a prompt into a validated structured object for one artifact spec."""

    def generate(self, spec: ArtifactSpec, prompt: str) -> dict: ...
