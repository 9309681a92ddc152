"""Public contact form."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from ..dependencies import get_mailer
from ..errors import EmailDeliveryError
from ..responses import success
from .service import Mailer, build_contact_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    category: str | None = Field(None, max_length=64)
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=10, max_length=10_000)


@router.post("")
@router.post("/", include_in_schema=False)
def send_contact(body: ContactRequest, mailer: Mailer = Depends(get_mailer)):
    msg = build_contact_email(body.name, body.email, body.subject, body.message, body.category)
    if not mailer.send(msg):
        logger.error("Contact form delivery failed (from=%s)", body.email)
        raise EmailDeliveryError("Failed to send email")
    return success({"message": "Email sent successfully"})
