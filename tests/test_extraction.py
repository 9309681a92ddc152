"""Tests for CV text extraction."""

import threading
import time

import pytest

from cvreview.errors import ExtractionError, ValidationError
from cvreview.extraction import service as extraction
from cvreview.extraction.service import DOCX_MIME, PDF_MIME, extract_text, validate_upload
from conftest import docx_bytes


class TestValidateUpload:
    def test_missing_file(self):
        with pytest.raises(ValidationError, match="No file uploaded"):
            validate_upload(None, PDF_MIME)

    def test_unsupported_type(self):
        with pytest.raises(ValidationError, match="Unsupported file format"):
            validate_upload(b"hello", "text/plain")

    def test_too_large(self, monkeypatch):
        monkeypatch.setattr(extraction.settings, "max_upload_bytes", 10)
        with pytest.raises(ValidationError, match="File too large"):
            validate_upload(b"x" * 11, PDF_MIME)


class TestExtractText:
    def test_docx_paragraphs_and_tables(self):
        text = extract_text(docx_bytes("Ana Putri\nSoftware engineer with Python, FastAPI, SQL and AWS."), DOCX_MIME)
        assert "Ana Putri" in text
        assert "FastAPI" in text

    def test_garbage_pdf_is_insufficient_text(self):
        garbage = b"this is plain text pretending to be a pdf\n" * 75
        with pytest.raises(ValidationError, match="Could not extract sufficient text"):
            extract_text(garbage, PDF_MIME)

    def test_garbage_docx_is_insufficient_text(self):
        with pytest.raises(ValidationError, match="Could not extract sufficient text"):
            extract_text(b"not a zip archive at all" * 10, DOCX_MIME)

    def test_short_text_rejected(self):
        with pytest.raises(ValidationError, match="Could not extract sufficient text"):
            extract_text(docx_bytes("Too short"), DOCX_MIME)

    def test_timeout_raises_extraction_error(self, monkeypatch):
        def _slow(content):
            time.sleep(0.5)
            return "late"

        monkeypatch.setitem(extraction._PARSERS, PDF_MIME, _slow)
        with pytest.raises(ExtractionError):
            extract_text(b"%PDF-1.4", PDF_MIME, timeout=0.05)

    def test_parser_crash_raises_extraction_error(self, monkeypatch):
        def _crash(content):
            raise RuntimeError("boom")

        monkeypatch.setitem(extraction._PARSERS, PDF_MIME, _crash)
        with pytest.raises(ExtractionError):
            extract_text(b"%PDF-1.4", PDF_MIME)

    def test_stalled_parses_do_not_block_new_uploads(self, monkeypatch):
        release = threading.Event()

        def _stalled(content):
            release.wait(5)
            return ""

        monkeypatch.setitem(extraction._PARSERS, DOCX_MIME, _stalled)
        try:
            for _ in range(6):
                with pytest.raises(ExtractionError):
                    extract_text(b"PK-stalled", DOCX_MIME, timeout=0.05)

            monkeypatch.setitem(extraction._PARSERS, PDF_MIME, lambda content: "Python engineer " * 10)
            started = time.monotonic()
            assert extract_text(b"%PDF-1.4", PDF_MIME, timeout=1.0).startswith("Python engineer")
            assert time.monotonic() - started < 1.0
        finally:
            release.set()

    def test_unreadable_error_from_worker_is_insufficient_text(self, monkeypatch):
        def _broken(content):
            raise KeyError("word/document.xml")

        monkeypatch.setitem(extraction._PARSERS, DOCX_MIME, _broken)
        with pytest.raises(ValidationError, match="Could not extract sufficient text"):
            extract_text(b"PK-broken", DOCX_MIME)
