"""Account request schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class ProfileUpdateRequest(BaseModel):
    name: str = ""
    email: EmailStr | None = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_missing(cls, v):
        # Blank means "not given"; the service reports the required field
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PasswordChangeRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_password: str = ""
    new_password: str = ""


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=255)


class UserUpdateRequest(BaseModel):
    name: str | None = Field(None, max_length=128)
    email: EmailStr | None = None
    password: str | None = Field(None, max_length=255)
