"""Authentication routes: registration, sessions, verification, password reset."""

import logging

from fastapi import APIRouter, Cookie, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import get_db
from ..dependencies import get_mailer
from ..errors import AuthError
from ..notifications.service import Mailer
from ..responses import error, success
from .models import User
from .schemas import EmailRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, VerifyEmailRequest
from .service import (
    authenticate_user,
    issue_refresh_token,
    purge_expired_refresh_tokens,
    register_user,
    request_password_reset,
    resend_verification,
    reset_password,
    revoke_refresh_token,
    rotate_refresh_token,
    verify_email,
)
from .tokens import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REFRESH_COOKIE_NAME = "refresh_token"


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict" if settings.is_production else "lax",
        "path": "/",
    }


def _set_refresh_cookie(response: JSONResponse, raw: str) -> None:
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        raw,
        max_age=settings.refresh_token_ttl_seconds,
        **_cookie_options(),
    )


def _clear_refresh_cookie(response: JSONResponse) -> None:
    response.delete_cookie(REFRESH_COOKIE_NAME, **_cookie_options())


def _user_payload(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": str(user.role),
        "emailVerified": bool(user.email_verified),
    }


@router.post("/register")
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    register_user(db, mailer, body.name, body.email, body.password, body.password_confirm)
    db.commit()
    return success({"message": "Registration successful. Please verify your email."}, status_code=201)


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, body.email, body.password)
    purge_expired_refresh_tokens(db, user.id)
    refresh = issue_refresh_token(db, user.id)
    db.commit()

    response = success({
        "token": create_access_token(user.id, user.role),
        "expiresIn": settings.access_token_ttl_seconds,
        "user": _user_payload(user),
    })
    _set_refresh_cookie(response, refresh)
    return response


@router.post("/refresh")
def refresh_session(
    db: Session = Depends(get_db),
    refresh_token: str | None = Cookie(default=None),
):
    try:
        user, next_refresh = rotate_refresh_token(db, refresh_token)
    except AuthError as exc:
        # The consumed record (if any) is deleted even when the user is gone
        db.commit()
        response = error(exc.message, exc.status_code)
        _clear_refresh_cookie(response)
        return response
    db.commit()

    response = success({
        "token": create_access_token(user.id, user.role),
        "expiresIn": settings.access_token_ttl_seconds,
    })
    _set_refresh_cookie(response, next_refresh)
    return response


@router.post("/logout")
def logout(
    db: Session = Depends(get_db),
    refresh_token: str | None = Cookie(default=None),
):
    try:
        revoke_refresh_token(db, refresh_token)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to revoke refresh token on logout")

    response = success({"message": "Logged out successfully"})
    _clear_refresh_cookie(response)
    return response


@router.post("/verify-email")
def verify_email_route(body: VerifyEmailRequest, db: Session = Depends(get_db)):
    verify_email(db, body.token)
    db.commit()
    return success({"message": "Email verified successfully"})


@router.post("/resend-verification")
def resend_verification_route(
    body: EmailRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    resend_verification(db, mailer, body.email)
    db.commit()
    return success({"message": "A new verification email has been sent."})


@router.post("/forgotPassword")
def forgot_password(
    body: EmailRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    request_password_reset(db, mailer, body.email)
    db.commit()
    return success({"message": "Token sent to email!"})


@router.put("/resetPassword/{token}")
def reset_password_route(token: str, body: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = reset_password(db, token, body.password)
    db.commit()
    return success({
        "token": create_access_token(user.id, user.role),
        "message": "Password has been reset successfully",
    })
