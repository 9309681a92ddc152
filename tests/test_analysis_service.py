"""Tests for analysis service: submission, ownership, regeneration policy."""

import io
import json
import uuid

import pytest
from docx import Document

from cvreview.analysis.models import Analysis, AnalysisStatus, CoverLetterSource
from cvreview.analysis.service import (
    build_docx,
    create_analysis,
    get_artifact,
    get_owned_analysis,
    list_history,
    submit_analysis,
    update_cover_letter,
)
from cvreview.errors import GenerationError, NotFoundError, QuotaExceededError, ValidationError
from cvreview.extraction.service import DOCX_MIME
from cvreview.generation.artifacts import ArtifactKind
from conftest import analysis_payload, docx_bytes

JOB = "Backend engineer working with Python, FastAPI and PostgreSQL in a product team."


class TestCreateAnalysis:
    def test_target_company_wins(self, db_session, test_user):
        a = create_analysis(db_session, test_user.id, JOB, "cv", analysis_payload(), "Globex")
        assert a.company == "Globex"
        assert a.job_title == "Backend Engineer"
        assert a.status == AnalysisStatus.GOOD
        assert a.analysis_result["keywords"]["missing"] == ["Kubernetes"]

    def test_default_target_uses_generated_company(self, db_session, test_user):
        a = create_analysis(db_session, test_user.id, JOB, "cv", analysis_payload(), "Target Company")
        assert a.company == "Acme Corp"

    def test_missing_values_fall_back(self, db_session, test_user):
        payload = analysis_payload()
        payload["company"] = ""
        payload["jobTitle"] = ""
        a = create_analysis(db_session, test_user.id, JOB, "cv", payload, "Target Company")
        assert a.company == "Unknown Company"
        assert a.job_title == "Unknown Position"


class TestOwnership:
    def test_owner_can_read(self, db_session, test_user, test_analysis):
        assert get_owned_analysis(db_session, str(test_analysis.id), test_user.id).id == test_analysis.id

    def test_other_user_gets_not_found(self, db_session, other_user, test_analysis):
        with pytest.raises(NotFoundError, match="Analysis not found"):
            get_owned_analysis(db_session, str(test_analysis.id), other_user.id)

    def test_malformed_id_is_not_found(self, db_session, test_user):
        with pytest.raises(NotFoundError, match="Analysis not found"):
            get_owned_analysis(db_session, "not-a-uuid", test_user.id)

    def test_history_only_lists_own_records(self, db_session, test_user, other_user, test_analysis):
        create_analysis(db_session, other_user.id, JOB, "cv", analysis_payload())
        db_session.commit()
        assert [a.id for a in list_history(db_session, test_user.id)] == [test_analysis.id]


class TestSubmitAnalysis:
    def test_creates_record_and_spends_quota(self, db_session, generator, test_user):
        a = submit_analysis(db_session, generator, test_user, docx_bytes(), DOCX_MIME, JOB, "Globex")

        assert generator.kinds() == [ArtifactKind.ANALYSIS]
        assert "Globex" in generator.calls[0][1]
        assert a.user_id == test_user.id
        assert "Python" in a.cv_text
        assert test_user.analysis_quota == 4

    def test_no_quota_no_generation(self, db_session, generator, test_user):
        test_user.analysis_quota = 0
        db_session.commit()

        with pytest.raises(QuotaExceededError):
            submit_analysis(db_session, generator, test_user, docx_bytes(), DOCX_MIME, JOB)
        assert generator.calls == []
        assert db_session.query(Analysis).count() == 0

    def test_failed_generation_costs_nothing(self, db_session, generator, test_user):
        generator.error = GenerationError()
        with pytest.raises(GenerationError):
            submit_analysis(db_session, generator, test_user, docx_bytes(), DOCX_MIME, JOB)
        assert test_user.analysis_quota == 5
        assert db_session.query(Analysis).count() == 0

    def test_job_description_required(self, db_session, generator, test_user):
        with pytest.raises(ValidationError, match="Job description is required"):
            submit_analysis(db_session, generator, test_user, docx_bytes(), DOCX_MIME, "   ")

    def test_missing_file(self, db_session, generator, test_user):
        with pytest.raises(ValidationError, match="No file uploaded"):
            submit_analysis(db_session, generator, test_user, None, None, JOB)


class TestGetArtifact:
    @pytest.mark.parametrize("kind", [ArtifactKind.SUMMARY, ArtifactKind.COVER_LETTER, ArtifactKind.INTERVIEW])
    def test_second_call_is_served_from_storage(self, db_session, generator, test_user, test_analysis, kind):
        first = get_artifact(db_session, generator, test_analysis.id, test_user.id, kind)
        db_session.commit()
        second = get_artifact(db_session, generator, test_analysis.id, test_user.id, kind)

        assert len(generator.calls) == 1
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)

    def test_regenerate_always_calls_and_overwrites(self, db_session, generator, test_user, test_analysis):
        first = get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.SUMMARY)
        second = get_artifact(
            db_session, generator, test_analysis.id, test_user.id, ArtifactKind.SUMMARY, regenerate=True
        )

        assert len(generator.calls) == 2
        assert first != second
        db_session.refresh(test_analysis)
        assert test_analysis.summary_options == second

    def test_prompt_uses_stored_context(self, db_session, generator, test_user, test_analysis):
        get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.INTERVIEW)
        prompt = generator.calls[0][1]
        assert test_analysis.job_title in prompt
        assert test_analysis.company in prompt
        assert test_analysis.cv_text in prompt

    def test_interview_pack_shape(self, db_session, generator, test_user, test_analysis):
        pack = get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.INTERVIEW)
        questions = pack["questions"]
        assert [q["id"] for q in questions] == [f"q-{i}" for i in range(1, 11)]
        categories = [q["category"] for q in questions]
        assert categories.count("behavioral") == 4
        assert categories.count("technical") == 4
        assert categories.count("company") == 2

    def test_cover_letter_marked_generated(self, db_session, generator, test_user, test_analysis):
        result = get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.COVER_LETTER)
        assert set(result) == {"coverLetter", "tips"}
        assert len(result["tips"]["strengths"]) == 4
        assert test_analysis.cover_letter_source == CoverLetterSource.GENERATED

    def test_stored_text_is_decoded(self, db_session, generator, test_user, test_analysis):
        test_analysis.summary_options = json.dumps({"options": ["a", "b", "c"]})
        db_session.commit()
        result = get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.SUMMARY)
        assert result == {"options": ["a", "b", "c"]}
        assert generator.calls == []

    def test_other_user_cannot_generate(self, db_session, generator, other_user, test_analysis):
        with pytest.raises(NotFoundError):
            get_artifact(db_session, generator, test_analysis.id, other_user.id, ArtifactKind.SUMMARY)
        assert generator.calls == []

    def test_analysis_kind_is_not_on_demand(self, db_session, generator, test_user, test_analysis):
        with pytest.raises(ValueError):
            get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.ANALYSIS)


class TestCoverLetterEdits:
    def test_edit_replaces_text(self, db_session, generator, test_user, test_analysis):
        get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.COVER_LETTER)
        edited = update_cover_letter(db_session, test_analysis.id, test_user.id, "My own words.")

        assert edited.cover_letter == "My own words."
        assert edited.cover_letter_source == CoverLetterSource.EDITED
        # The edit is now what a non-regenerate fetch returns
        fetched = get_artifact(db_session, generator, test_analysis.id, test_user.id, ArtifactKind.COVER_LETTER)
        assert fetched["coverLetter"] == "My own words."
        assert len(generator.calls) == 1

    def test_edit_requires_ownership(self, db_session, other_user, test_analysis):
        with pytest.raises(NotFoundError):
            update_cover_letter(db_session, test_analysis.id, other_user.id, "Hijack")

    def test_docx_export(self, db_session, test_user, test_analysis):
        test_analysis.cover_letter = "Dear team,\n\nFirst paragraph.\n\nSecond paragraph."
        test_analysis.company = "Acme Corp"
        buf, filename = build_docx(test_analysis, test_user)

        assert filename == "Cover_Letter_Acme_Corp.docx"
        texts = [p.text for p in Document(io.BytesIO(buf.read())).paragraphs]
        assert "First paragraph." in texts
        assert "Second paragraph." in texts

    def test_docx_without_letter(self, db_session, test_user, test_analysis):
        with pytest.raises(NotFoundError, match="Cover letter not found"):
            build_docx(test_analysis, test_user)


def test_unknown_uuid_not_found(db_session, test_user):
    with pytest.raises(NotFoundError):
        get_owned_analysis(db_session, uuid.uuid4(), test_user.id)
