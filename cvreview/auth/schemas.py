"""Authentication request schemas."""

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=255)
    password_confirm: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)


class VerifyEmailRequest(BaseModel):
    token: str = ""


class EmailRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8, max_length=255)
