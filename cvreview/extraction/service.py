"""CV text extraction from uploaded PDF and DOCX files."""

import io
import logging
import threading
import zipfile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ..config import settings
from ..errors import ExtractionError, ValidationError

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_MIME_TYPES = frozenset({PDF_MIME, DOCX_MIME})

def _pdf_text(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _docx_text(content: bytes) -> str:
    doc = Document(io.BytesIO(content))
    parts = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            parts.append(" | ".join(cell.text for cell in row.cells))
    return "\n".join(parts)


_PARSERS = {
    PDF_MIME: _pdf_text,
    DOCX_MIME: _docx_text,
}

# Errors meaning "this is not a readable document" rather than a crash
_UNREADABLE = (PyPdfError, PackageNotFoundError, zipfile.BadZipFile, KeyError, IndexError, ValueError)


def _run_with_timeout(parser, content: bytes, timeout: float) -> str:
    """Run ``parser`` on its own daemon thread and wait at most ``timeout`` seconds.

    Python threads cannot be killed, so a parse that overruns keeps running
    until the library returns. Each call gets a fresh thread, which means a
    stuck parse only costs its own thread and never delays other uploads.
    """
    outcome: dict = {}

    def _target() -> None:
        try:
            outcome["text"] = parser(content)
        except Exception as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=_target, name="extract", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise TimeoutError(f"extraction exceeded {timeout:.1f}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("text", "")


def validate_upload(content: bytes | None, content_type: str | None) -> None:
    if not content:
        raise ValidationError("No file uploaded")
    if content_type not in SUPPORTED_MIME_TYPES:
        raise ValidationError("Unsupported file format. Please upload PDF or DOCX.")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(f"File too large (max {settings.max_upload_bytes // (1024 * 1024)} MB)")


def extract_text(content: bytes, content_type: str, timeout: float | None = None) -> str:
    """Return the plain text of an uploaded CV.

    Raises ValidationError for unsupported or unreadable files and for files
    that yield too little text, ExtractionError on timeout or parser crash.
    """
    validate_upload(content, content_type)
    parser = _PARSERS[content_type]
    timeout = settings.extraction_timeout_seconds if timeout is None else timeout

    try:
        text = _run_with_timeout(parser, content, timeout)
    except TimeoutError as exc:
        logger.error("Text extraction timed out after %.1fs (type=%s, size=%d)", timeout, content_type, len(content))
        raise ExtractionError("Timed out while reading the uploaded file") from exc
    except _UNREADABLE as exc:
        logger.warning("Unreadable upload (type=%s, size=%d): %s", content_type, len(content), exc)
        text = ""
    except Exception as exc:
        logger.exception("Text extraction failed (type=%s, size=%d)", content_type, len(content))
        raise ExtractionError() from exc

    text = (text or "").strip()
    if len(text) < settings.min_cv_text_length:
        raise ValidationError("Could not extract sufficient text from the file.")
    return text
