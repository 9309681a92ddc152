"""Tests for the structured AI response schemas."""

import pytest
from pydantic import ValidationError

from cvreview.integrations.validation import (
    AnalysisAIResponse,
    InterviewAIResponse,
    SummaryAIResponse,
)
from conftest import analysis_payload, interview_payload, summary_payload


class TestAnalysisSchema:
    def test_accepts_camel_case_payload(self):
        parsed = AnalysisAIResponse.model_validate(analysis_payload())
        assert parsed.job_title == "Backend Engineer"
        dumped = parsed.model_dump(mode="json", by_alias=True)
        assert dumped["jobDescriptionSummary"].startswith("Backend role")
        assert dumped["status"] == "good"

    def test_float_and_string_scores_are_rounded(self):
        payload = analysis_payload()
        payload["score"] = 84.6
        payload["sections"]["format"]["score"] = "71"
        parsed = AnalysisAIResponse.model_validate(payload)
        assert parsed.score == 85
        assert parsed.sections.format.score == 71

    def test_score_out_of_range(self):
        payload = analysis_payload()
        payload["score"] = 140
        with pytest.raises(ValidationError):
            AnalysisAIResponse.model_validate(payload)

    def test_status_is_normalized(self):
        payload = analysis_payload()
        payload["status"] = "Needs Improvement"
        assert AnalysisAIResponse.model_validate(payload).status == "needs-improvement"

    def test_unknown_status_rejected(self):
        payload = analysis_payload()
        payload["status"] = "average"
        with pytest.raises(ValidationError):
            AnalysisAIResponse.model_validate(payload)

    def test_json_schema_uses_wire_names(self):
        schema = AnalysisAIResponse.model_json_schema(by_alias=True)
        assert "jobDescriptionSummary" in schema["properties"]
        assert "job_description_summary" not in schema["properties"]


class TestSummarySchema:
    def test_three_options(self):
        assert len(SummaryAIResponse.model_validate(summary_payload()).options) == 3

    def test_wrong_count(self):
        with pytest.raises(ValidationError):
            SummaryAIResponse.model_validate({"options": ["a", "b"]})

    def test_duplicates_rejected(self):
        with pytest.raises(ValidationError, match="distinct"):
            SummaryAIResponse.model_validate({"options": ["Same", "same ", "Other"]})


class TestInterviewSchema:
    def test_valid_distribution(self):
        parsed = InterviewAIResponse.model_validate(interview_payload())
        assert len(parsed.questions) == 10

    def test_wrong_distribution(self):
        payload = interview_payload()
        payload["questions"][9]["category"] = "technical"
        with pytest.raises(ValidationError, match="expected 4 behavioral"):
            InterviewAIResponse.model_validate(payload)

    def test_wrong_length(self):
        payload = interview_payload()
        payload["questions"] = payload["questions"][:9]
        with pytest.raises(ValidationError):
            InterviewAIResponse.model_validate(payload)

    def test_category_case_insensitive(self):
        payload = interview_payload()
        payload["questions"][0]["category"] = "Behavioral"
        assert InterviewAIResponse.model_validate(payload).questions[0].category == "behavioral"
