"""Shared FastAPI dependencies."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .auth.models import User
from .auth.tokens import Principal, decode_access_token
from .database.base import get_db
from .errors import AuthError
from .generation.artifacts import Generator
from .notifications.service import Mailer

_bearer = HTTPBearer(auto_error=False)


def get_mailer(request: Request) -> Mailer:
    """Get the mail delivery service from app state."""
    return request.app.state.mailer


def get_generator(request: Request) -> Generator:
    """Get the structured generator from app state."""
    return request.app.state.generator


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(get_db),
) -> Principal:
    """Validate the bearer token and return the caller as an explicit principal."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("Not authorized, no token")
    claimed = decode_access_token(credentials.credentials)

    user = db.query(User).filter(User.id == claimed.user_id).first()
    if not user or not user.is_active:
        raise AuthError("Not authorized, user not found")
    # Role comes from storage so upgrades apply without re-login
    return Principal(user_id=user.id, role=user.role)
