"""Outbound email: message building, SMTP delivery, credential encryption.

The SMTP password may be stored encrypted using Fernet (AES-128-CBC) with a
key derived from SECRET_KEY. Delivery goes through a ``Mailer`` so the app
can swap in a logging mailer when SMTP is not configured.
"""

import base64
import hashlib
import logging
import smtplib
from collections import deque
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from html import escape
from typing import Protocol

from cryptography.fernet import Fernet

from ..config import settings

logger = logging.getLogger(__name__)

_SENDER_NAME = "Solid CV Review"


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str) -> str:
    """Encrypt a secret for storage in the environment.

    Operators use this to produce the value of ``SMTP_PASSWORD``; the mailer
    recognises the Fernet prefix and decrypts it with the same ``SECRET_KEY``.
    """
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


# ── Mailers ────────────────────────────────────────────────────────────


class Mailer(Protocol):
    """Mail delivery interface. ``send`` returns True on success."""

    def send(self, msg: MIMEMultipart) -> bool: ...


class SmtpMailer:
    """Delivers messages over SMTP (STARTTLS, or implicit TLS when configured)."""

    def __init__(self, host: str, port: int, user: str, password: str, use_ssl: bool = False) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._use_ssl = use_ssl

    def send(self, msg: MIMEMultipart) -> bool:
        try:
            # Fernet tokens start with 'gAAAAA'
            password = self._password
            if password.startswith("gAAAAA"):
                password = decrypt_value(password)

            if self._use_ssl:
                with smtplib.SMTP_SSL(self._host, self._port, timeout=15) as server:
                    server.login(self._user, password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self._host, self._port, timeout=15) as server:
                    server.ehlo()
                    server.starttls()
                    server.ehlo()
                    server.login(self._user, password)
                    server.send_message(msg)
            logger.info("Email sent to %s (subject=%r)", msg["To"], msg["Subject"])
            return True
        except Exception:
            logger.exception("Failed to send email to %s via %s:%s", msg["To"], self._host, self._port)
            return False


class LogMailer:
    """Development mailer: records the message instead of sending it.

    Bodies carry raw tokens, so only the envelope is logged.
    """

    def __init__(self) -> None:
        self.outbox: deque[MIMEMultipart] = deque(maxlen=100)

    def send(self, msg: MIMEMultipart) -> bool:
        logger.warning("SMTP not configured; email to %s not sent (subject=%r)", msg["To"], msg["Subject"])
        self.outbox.append(msg)
        return True


def create_mailer() -> Mailer:
    """Factory: SMTP when credentials are configured, otherwise log-only."""
    if not settings.smtp_user or not settings.smtp_password:
        return LogMailer()
    return SmtpMailer(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        use_ssl=settings.smtp_use_ssl,
    )


# ── Message building ──────────────────────────────────────────────────


def _base_message(to: str, subject: str, text_body: str, html_body: str, reply_to: str = "") -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    sender = settings.sender_address
    msg["From"] = formataddr((_SENDER_NAME, sender))
    msg["To"] = to
    msg["Reply-To"] = reply_to or sender
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=sender.split("@")[-1] if "@" in sender else "local")
    msg["Subject"] = subject
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


def _button_email(heading: str, lines: list[str], button_label: str, url: str, color: str) -> str:
    paragraphs = "".join(f"<p>{escape(line)}</p>" for line in lines)
    safe_url = escape(url, quote=True)
    return f"""\
<div style="font-family: Arial, sans-serif; line-height: 1.6;">
  <h2>{escape(heading)}</h2>
  {paragraphs}
  <p><a href="{safe_url}" style="background-color: {color}; color: #fff; padding: 12px 24px;
     border-radius: 6px; text-decoration: none; display: inline-block;">{escape(button_label)}</a></p>
  <p>If the button does not work, copy and paste this link into your browser:</p>
  <p>{safe_url}</p>
</div>"""


def build_verification_email(to: str, raw_token: str) -> MIMEMultipart:
    verify_url = f"{settings.client_url}/verify-email?token={raw_token}"
    lines = ["Welcome to Solid CV Review! Please verify your email address to unlock every feature."]
    text_body = f"{lines[0]}\n\nVerify your email: {verify_url}\n\nThis link expires in 24 hours.\n"
    html_body = _button_email("Verify your email", lines, "Verify Email", verify_url, "#2563eb")
    return _base_message(to, "Verify your email address", text_body, html_body)


def build_password_reset_email(to: str, raw_token: str) -> MIMEMultipart:
    reset_url = f"{settings.client_url}/reset-password/{raw_token}"
    lines = [
        "You are receiving this email because a password reset was requested for your account.",
        "If you did not request it, ignore this email. The link expires in 10 minutes.",
    ]
    text_body = "\n".join(lines) + f"\n\nReset your password: {reset_url}\n"
    html_body = _button_email("Password Reset Request", lines, "Reset Password", reset_url, "#4CAF50")
    return _base_message(to, "Your Password Reset Token", text_body, html_body)


def build_contact_email(name: str, email: str, subject: str, message: str, category: str | None = None) -> MIMEMultipart:
    category_label = category or "General"
    prefix = f"[{category}] " if category else ""
    text_body = (
        f"Name: {name}\n"
        f"Email: {email}\n"
        f"Category: {category_label}\n"
        f"Subject: {subject}\n\n"
        f"Message:\n{message}\n"
    )
    html_body = (
        "<h3>New Contact Form Submission</h3>"
        f"<p><strong>Name:</strong> {escape(name)}</p>"
        f"<p><strong>Email:</strong> {escape(email)}</p>"
        f"<p><strong>Category:</strong> {escape(category_label)}</p>"
        f"<p><strong>Subject:</strong> {escape(subject)}</p>"
        "<hr /><p><strong>Message:</strong></p>"
        f'<p style="white-space: pre-wrap;">{escape(message)}</p>'
    )
    recipient = settings.contact_recipient or settings.sender_address
    return _base_message(recipient, f"[Contact Form] {prefix}{subject}", text_body, html_body, reply_to=email)
