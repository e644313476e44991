"""Transactional email delivery over SMTP, with a log-only mode when SMTP is not configured."""

from __future__ import annotations

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import TYPE_CHECKING, Any, Literal, Protocol

from warden.core.security import redact_email

if TYPE_CHECKING:
    from warden.core.config import Settings

logger = logging.getLogger(__name__)

TemplateKind = Literal[
    "email_verification",
    "password_reset",
    "welcome",
    "password_changed",
]

# kind -> (subject, plain-text body). Bodies are formatted with the template data.
TEMPLATES: dict[str, tuple[str, str]] = {
    "email_verification": (
        "Verify your email address",
        "Hi {name},\n\n"
        "Thanks for registering. Verify your email address by visiting:\n\n"
        "{verification_url}\n\n"
        "This link expires in {expires_hours} hours. If you did not create an "
        "account, you can ignore this email.",
    ),
    "password_reset": (
        "Reset your password",
        "Hi {name},\n\n"
        "We received a request to reset your password. Choose a new one here:\n\n"
        "{reset_url}\n\n"
        "This link expires in {expires_minutes} minutes. If you did not request "
        "this, you can ignore this email.",
    ),
    "welcome": (
        "Welcome aboard",
        "Hi {name},\n\n"
        "Your email address is verified and your account is ready:\n\n"
        "{dashboard_url}",
    ),
    "password_changed": (
        "Your password was changed",
        "Hi {name},\n\n"
        "The password for your account was just changed and every device was "
        "signed out. If this was not you, reset your password immediately.",
    ),
}


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the SMTP server."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmailSender(Protocol):
    def deliver(
        self, address: str, template_kind: TemplateKind, template_data: dict[str, Any]
    ) -> str: ...


def render_template(template_kind: str, template_data: dict[str, Any]) -> tuple[str, str, str]:
    """Return (subject, text body, html body) for a template kind."""
    try:
        subject, text_template = TEMPLATES[template_kind]
    except KeyError as e:
        raise EmailDeliveryError(f"Unknown email template: {template_kind}") from e
    try:
        text_body = text_template.format(**template_data)
    except KeyError as e:
        raise EmailDeliveryError(f"Missing template field: {e.args[0]}") from e
    paragraphs = "".join(
        f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>"
        for p in text_body.split("\n\n")
    )
    html_body = (
        '<!DOCTYPE html><html><head><meta charset="utf-8"></head>'
        f"<body>{paragraphs}</body></html>"
    )
    return subject, text_body, html_body


class EmailService:
    """
    SMTP email sender.

    When SMTP_HOST is not set (dev), messages are logged instead of sent and
    deliver() still returns a message id.
    """

    def __init__(
        self,
        *,
        smtp_host: str | None = None,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        smtp_use_tls: bool = True,
        from_email: str | None = None,
        from_name: str = "Warden",
        timeout: float = 30.0,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: "Settings") -> "EmailService":
        password = (
            settings.SMTP_PASSWORD.get_secret_value()
            if settings.SMTP_PASSWORD is not None
            else None
        )
        return cls(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=password,
            smtp_use_tls=settings.SMTP_USE_TLS,
            from_email=settings.EMAIL_FROM,
            from_name=settings.EMAIL_FROM_NAME,
            timeout=settings.EMAIL_TIMEOUT_SEC,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def deliver(
        self, address: str, template_kind: TemplateKind, template_data: dict[str, Any]
    ) -> str:
        """Render and send one templated email. Returns the Message-ID."""
        subject, text_body, html_body = render_template(template_kind, template_data)
        domain = self.from_email.split("@", 1)[-1] if self.from_email else None
        message_id = make_msgid(domain=domain)

        if not self.is_configured:
            logger.info(
                "Email not sent (SMTP not configured): to=%s template=%s message_id=%s",
                redact_email(address),
                template_kind,
                message_id,
            )
            return message_id

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = address
        msg["Message-ID"] = message_id
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")

        context = ssl.create_default_context()
        try:
            if self.smtp_use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(
                    self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
                ) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(
                "SMTP authentication failed: host=%s user=%s", self.smtp_host, self.smtp_user
            )
            raise EmailDeliveryError("SMTP authentication failed") from e
        except (smtplib.SMTPException, ssl.SSLError, OSError) as e:
            logger.error(
                "Email send failed: to=%s template=%s error_type=%s",
                redact_email(address),
                template_kind,
                type(e).__name__,
            )
            raise EmailDeliveryError(f"Email sending failed: {type(e).__name__}") from e

        logger.info(
            "Email sent: to=%s template=%s message_id=%s",
            redact_email(address),
            template_kind,
            message_id,
        )
        return message_id
