"""Analysis service: submission, ownership lookup, artifact regeneration policy."""

import io
import json
import logging
import re
from datetime import UTC, datetime
from uuid import UUID

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Cm, Pt
from sqlalchemy.orm import Session

from ..auth.models import User
from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..extraction.service import extract_text, validate_upload
from ..generation.artifacts import ARTIFACTS, ArtifactKind, Generator, PromptContext
from ..quota import service as quota
from .models import Analysis, AnalysisStatus, CoverLetterSource

logger = logging.getLogger(__name__)

DEFAULT_TARGET_COMPANY = "Target Company"
UNKNOWN_COMPANY = "Unknown Company"
UNKNOWN_POSITION = "Unknown Position"

# Artifacts that live on an existing record and follow the regenerate policy
ON_DEMAND_ARTIFACTS = (ArtifactKind.SUMMARY, ArtifactKind.COVER_LETTER, ArtifactKind.INTERVIEW)


def get_owned_analysis(db: Session, analysis_id: str | UUID, owner_id: UUID) -> Analysis:
    """Fetch a record by id and owner.

    A malformed id, a missing record and someone else's record all raise the
    same NotFoundError.
    """
    try:
        uid = analysis_id if isinstance(analysis_id, UUID) else UUID(str(analysis_id))
    except ValueError:
        raise NotFoundError("Analysis not found") from None

    analysis = db.query(Analysis).filter(Analysis.id == uid, Analysis.user_id == owner_id).first()
    if not analysis:
        raise NotFoundError("Analysis not found")
    return analysis


def list_history(db: Session, owner_id: UUID) -> list[Analysis]:
    return (
        db.query(Analysis)
        .filter(Analysis.user_id == owner_id)
        .order_by(Analysis.created_at.desc())
        .all()
    )


def _resolve_company(target_company: str, generated_company: str | None) -> str:
    if target_company and target_company != DEFAULT_TARGET_COMPANY:
        return target_company
    return generated_company or UNKNOWN_COMPANY


def create_analysis(
    db: Session,
    owner_id: UUID,
    job_description: str,
    cv_text: str,
    payload: dict,
    target_company: str = DEFAULT_TARGET_COMPANY,
) -> Analysis:
    """Insert a new record for one submission. Never updates an existing one."""
    analysis = Analysis(
        user_id=owner_id,
        job_title=payload.get("jobTitle") or UNKNOWN_POSITION,
        company=_resolve_company(target_company, payload.get("company")),
        job_description=job_description,
        cv_text=cv_text,
        score=payload["score"],
        status=AnalysisStatus(payload["status"]),
        analysis_result=payload,
    )
    db.add(analysis)
    db.flush()
    return analysis


def submit_analysis(
    db: Session,
    generator: Generator,
    user: User,
    content: bytes | None,
    content_type: str | None,
    job_description: str,
    target_company: str = "",
) -> Analysis:
    """Run the full submission flow for one CV and job description.

    Quota is checked before extraction and generation, and only spent once
    the record exists.
    """
    validate_upload(content, content_type)
    job_description = (job_description or "").strip()
    if not job_description:
        raise ValidationError("Job description is required")
    if len(job_description) > settings.max_job_desc_size:
        raise ValidationError(f"Job description too long (max {settings.max_job_desc_size} characters)")
    target_company = (target_company or "").strip() or DEFAULT_TARGET_COMPANY

    quota.check_and_reserve(user)

    cv_text = extract_text(content, content_type)

    spec = ARTIFACTS[ArtifactKind.ANALYSIS]
    ctx = PromptContext(job_description=job_description, cv_text=cv_text, company=target_company)
    payload = generator.generate(spec, spec.build_prompt(ctx))

    analysis = create_analysis(db, user.id, job_description, cv_text, payload, target_company)
    quota.consume(user)
    db.flush()
    logger.info("Analysis %s created for user %s (score=%s)", analysis.id, user.id, analysis.score)
    return analysis


def _decode(value):
    """Stored artifacts may come back as encoded JSON text from older rows."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _stored_artifact(analysis: Analysis, kind: ArtifactKind) -> dict | None:
    if kind == ArtifactKind.SUMMARY:
        return _decode(analysis.summary_options) if analysis.summary_options else None
    if kind == ArtifactKind.COVER_LETTER:
        if not analysis.cover_letter:
            return None
        return {"coverLetter": analysis.cover_letter, "tips": _decode(analysis.cover_letter_tips)}
    if kind == ArtifactKind.INTERVIEW:
        return _decode(analysis.interview_questions) if analysis.interview_questions else None
    raise ValueError(f"{kind} is not an on-demand artifact")


def _store_artifact(analysis: Analysis, kind: ArtifactKind, result: dict) -> None:
    if kind == ArtifactKind.SUMMARY:
        analysis.summary_options = result
    elif kind == ArtifactKind.COVER_LETTER:
        analysis.cover_letter = result["coverLetter"]
        analysis.cover_letter_tips = result["tips"]
        analysis.cover_letter_source = CoverLetterSource.GENERATED.value
    elif kind == ArtifactKind.INTERVIEW:
        analysis.interview_questions = result


def get_artifact(
    db: Session,
    generator: Generator,
    analysis_id: str | UUID,
    owner_id: UUID,
    kind: ArtifactKind,
    regenerate: bool = False,
) -> dict:
    """Return a stored artifact, or generate and store it.

    Without ``regenerate`` a populated field is returned as-is and the
    generator is not called. Concurrent regenerations are last-write-wins.
    """
    if kind not in ON_DEMAND_ARTIFACTS:
        raise ValueError(f"{kind} is not an on-demand artifact")

    analysis = get_owned_analysis(db, analysis_id, owner_id)
    if not regenerate:
        stored = _stored_artifact(analysis, kind)
        if stored is not None:
            return stored

    spec = ARTIFACTS[kind]
    ctx = PromptContext(
        job_description=analysis.job_description,
        cv_text=analysis.cv_text,
        company=analysis.company,
        job_title=analysis.job_title,
    )
    result = generator.generate(spec, spec.build_prompt(ctx))

    _store_artifact(analysis, kind, result)
    db.flush()
    logger.info("Stored %s for analysis %s (regenerate=%s)", kind, analysis.id, regenerate)
    return result


def update_cover_letter(db: Session, analysis_id: str | UUID, owner_id: UUID, text: str) -> Analysis:
    """Overwrite the cover letter with user-edited text. No history is kept."""
    analysis = get_owned_analysis(db, analysis_id, owner_id)
    analysis.cover_letter = text
    analysis.cover_letter_source = CoverLetterSource.EDITED.value
    db.flush()
    return analysis


def build_docx(analysis: Analysis, author: User) -> tuple[io.BytesIO, str]:
    """Render the stored cover letter as a formatted DOCX.

    Returns an in-memory buffer and a download filename.
    """
    if not analysis.cover_letter:
        raise NotFoundError("Cover letter not found")

    doc = Document()

    for section in doc.sections:
        section.top_margin = Cm(2.5)
        section.bottom_margin = Cm(2.5)
        section.left_margin = Cm(2.5)
        section.right_margin = Cm(2.5)

    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)
    pf = style.paragraph_format
    pf.space_before = Pt(0)
    pf.space_after = Pt(6)
    pf.line_spacing = 1.15

    # Header: author name and email, right-aligned
    header_para = doc.add_paragraph()
    header_para.alignment = WD_ALIGN_PARAGRAPH.RIGHT
    name_run = header_para.add_run(f"{author.name}\n")
    name_run.bold = True
    name_run.font.size = Pt(13)
    contact_run = header_para.add_run(author.email)
    contact_run.font.size = Pt(9)

    date_para = doc.add_paragraph()
    date_run = date_para.add_run(datetime.now(UTC).strftime("%d/%m/%Y"))
    date_run.font.size = Pt(10)

    doc.add_paragraph()

    # Body: blank lines separate paragraphs, single newlines are joined
    content = analysis.cover_letter.replace("\\n", "\n")
    for para_text in re.split(r"\n{2,}", content.strip()):
        cleaned = para_text.strip().replace("\n", " ")
        if not cleaned:
            continue
        p = doc.add_paragraph(cleaned)
        p.paragraph_format.space_after = Pt(8)

    company = (analysis.company or "").strip()
    if company and company != UNKNOWN_COMPANY:
        safe_company = re.sub(r"\s+", "_", company)
        safe_company = re.sub(r"[^A-Za-z0-9_.-]", "", safe_company)
        filename = f"Cover_Letter_{safe_company}.docx"
    else:
        filename = "Cover_Letter.docx"

    buf = io.BytesIO()
    doc.save(buf)
    buf.seek(0)
    return buf, filename
