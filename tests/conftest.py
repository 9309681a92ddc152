"""Shared test fixtures."""

import copy
import io
import uuid

import pytest
from docx import Document
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cvreview.account.models import UserPreference
from cvreview.analysis.models import Analysis
from cvreview.analysis.service import create_analysis
from cvreview.auth.models import RefreshToken, User, UserRole
from cvreview.auth.service import hash_password
from cvreview.config import settings
from cvreview.database.base import Base
from cvreview.generation.artifacts import ArtifactKind

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [User, RefreshToken, Analysis, UserPreference]

PASSWORD = "Secret123"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cost 12 is too slow for a test suite; the algorithm is the same."""
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.

    Note: SQLite doesn't support all PostgreSQL features (native UUID, enums),
    but works for service logic testing.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def make_user(db_session, email="ana@x.com", name="Ana", role=UserRole.FREE, quota=5) -> User:
    user = User(
        id=uuid.uuid4(),
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        analysis_quota=quota,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def test_user(db_session):
    return make_user(db_session)


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, email="budi@x.com", name="Budi")


# ── Canned generator output ──────────────────────────────────────────


def analysis_payload(n: int = 1) -> dict:
    return {
        "score": 78,
        "status": "good",
        "jobTitle": "Backend Engineer",
        "company": "Acme Corp",
        "jobDescriptionSummary": f"Backend role building Python services (run {n}).",
        "strengths": ["Python", "SQL"],
        "weaknesses": ["No Kubernetes"],
        "suggestions": ["Quantify achievements"],
        "keywords": {"found": ["Python", "FastAPI"], "missing": ["Kubernetes"]},
        "sections": {
            "format": {"score": 80, "feedback": "Clean layout"},
            "content": {"score": 75, "feedback": "Good detail"},
            "keywords": {"score": 70, "feedback": "Some gaps"},
            "experience": {"score": 85, "feedback": "Relevant"},
        },
    }


def summary_payload(n: int = 1) -> dict:
    return {
        "options": [
            f"Professional summary {n}",
            f"Achievement summary {n}",
            f"Creative summary {n}",
        ]
    }


def cover_letter_payload(n: int = 1) -> dict:
    return {
        "coverLetter": f"Dear Hiring Manager,\n\nI am applying (draft {n}).\n\nRegards,\nAna",
        "tips": {"strengths": ["Specific", "Quantified", "Tailored", "Concise"]},
    }


def _question(category: str, i: int) -> dict:
    return {
        "id": "dup",
        "category": category,
        "question": f"{category} question {i}",
        "goodAnswer": {"structure": "STAR", "keyPoints": ["Context", "Result"], "example": "An example"},
        "badAnswer": {"examples": ["I don't know"], "whyBad": ["No substance"]},
    }


def interview_payload(n: int = 1) -> dict:
    categories = ["behavioral"] * 4 + ["technical"] * 4 + ["company"] * 2
    return {"questions": [_question(cat, i + n) for i, cat in enumerate(categories)]}


_PAYLOADS = {
    ArtifactKind.ANALYSIS: analysis_payload,
    ArtifactKind.SUMMARY: summary_payload,
    ArtifactKind.COVER_LETTER: cover_letter_payload,
    ArtifactKind.INTERVIEW: interview_payload,
}


class FakeGenerator:
    """Stands in for the provider; validates and post-processes like the real one."""

    def __init__(self):
        self.calls: list[tuple[ArtifactKind, str]] = []
        self.error: Exception | None = None

    def generate(self, spec, prompt):
        self.calls.append((spec.kind, prompt))
        if self.error is not None:
            raise self.error
        raw = copy.deepcopy(_PAYLOADS[spec.kind](len(self.calls)))
        validated = spec.schema.model_validate(raw)
        return spec.finalize(validated.model_dump(mode="json", by_alias=True))

    def kinds(self) -> list[ArtifactKind]:
        return [kind for kind, _ in self.calls]


class RecordingMailer:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent = []

    def send(self, msg) -> bool:
        self.sent.append(msg)
        return self.ok

    def last_text(self) -> str:
        plain = self.sent[-1].get_payload()[0]
        return plain.get_payload(decode=True).decode()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def test_analysis(db_session, test_user):
    analysis = create_analysis(
        db_session,
        test_user.id,
        job_description="Backend engineer working with Python, FastAPI and PostgreSQL.",
        cv_text="Ana, software engineer with five years of Python and SQL experience.",
        payload=analysis_payload(),
        target_company="Target Company",
    )
    db_session.commit()
    return analysis


def docx_bytes(text: str = "Ana Putri. Software engineer with five years of Python, FastAPI and SQL.") -> bytes:
    doc = Document()
    for line in text.split("\n"):
        doc.add_paragraph(line)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()
