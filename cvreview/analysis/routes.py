"""Analysis JSON API routes: submission, history, on-demand artifacts."""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..auth.service import get_user_by_id
from ..auth.tokens import Principal
from ..config import settings
from ..database.base import get_db
from ..dependencies import get_current_principal, get_generator
from ..errors import AuthError
from ..generation.artifacts import ArtifactKind, Generator
from ..responses import success
from .schemas import AnalysisOut, CoverLetterUpdateRequest, HistoryItem, RegenerateRequest, dump
from .service import build_docx, get_artifact, get_owned_analysis, list_history, submit_analysis, update_cover_letter

router = APIRouter(prefix="/api/analysis", tags=["analysis"])

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@router.post("")
@router.post("/", include_in_schema=False)
def analyze_cv(
    cv_file: UploadFile | None = File(None, alias="cvFile"),
    job_description: str = Form("", alias="jobDescription"),
    target_company: str = Form("", alias="targetCompany"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    generator: Generator = Depends(get_generator),
):
    user = get_user_by_id(db, principal.user_id)
    if not user:
        raise AuthError("Not authorized, user not found")

    content, content_type = None, None
    if cv_file is not None:
        # One byte past the limit is enough to reject an oversized file
        content = cv_file.file.read(settings.max_upload_bytes + 1)
        content_type = cv_file.content_type

    analysis = submit_analysis(db, generator, user, content, content_type, job_description, target_company)
    db.commit()
    return success(dump(AnalysisOut, analysis), status_code=201)


@router.get("/history")
def history(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return success([dump(HistoryItem, a) for a in list_history(db, principal.user_id)])


@router.get("/{analysis_id}")
def get_analysis(
    analysis_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    analysis = get_owned_analysis(db, analysis_id, principal.user_id)
    return success(dump(AnalysisOut, analysis))


def _artifact_response(db, generator, analysis_id, principal, kind, body):
    result = get_artifact(
        db,
        generator,
        analysis_id,
        principal.user_id,
        kind,
        regenerate=body.regenerate if body else False,
    )
    db.commit()
    return success(result)


@router.post("/{analysis_id}/generate-summary")
def generate_summary(
    analysis_id: str,
    body: RegenerateRequest | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    generator: Generator = Depends(get_generator),
):
    return _artifact_response(db, generator, analysis_id, principal, ArtifactKind.SUMMARY, body)


@router.post("/{analysis_id}/generate-cover-letter")
def generate_cover_letter(
    analysis_id: str,
    body: RegenerateRequest | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    generator: Generator = Depends(get_generator),
):
    return _artifact_response(db, generator, analysis_id, principal, ArtifactKind.COVER_LETTER, body)


@router.post("/{analysis_id}/generate-interview")
def generate_interview(
    analysis_id: str,
    body: RegenerateRequest | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    generator: Generator = Depends(get_generator),
):
    return _artifact_response(db, generator, analysis_id, principal, ArtifactKind.INTERVIEW, body)


@router.put("/{analysis_id}/cover-letter")
def edit_cover_letter(
    analysis_id: str,
    body: CoverLetterUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    analysis = update_cover_letter(db, analysis_id, principal.user_id, body.cover_letter)
    db.commit()
    return success({
        "message": "Cover letter updated successfully",
        "coverLetter": analysis.cover_letter,
        "coverLetterSource": analysis.cover_letter_source,
    })


@router.get("/{analysis_id}/cover-letter/download")
def download_cover_letter(
    analysis_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    analysis = get_owned_analysis(db, analysis_id, principal.user_id)
    author = get_user_by_id(db, principal.user_id)
    buf, filename = build_docx(analysis, author)
    return StreamingResponse(
        buf,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
