# src/reservation_engine/infrastructure/collaborators/email.py

import asyncio
from dataclasses import dataclass
import io
import logging
from pathlib import Path
from typing import Any, Protocol

from fastapi import UploadFile
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from reservation_engine.config import MailSettings

logger = logging.getLogger(__name__)

TEMPLATE_FOLDER = Path(__file__).resolve().parents[2] / "templates" / "email"


@dataclass(frozen=True)
class EmailAttachment:
    """An inline attachment, referenced from the HTML body as ``cid:<content_id>``."""

    filename: str
    content: bytes
    content_id: str
    mime_type: str = "image"
    mime_subtype: str = "png"


class EmailSender(Protocol):
    def send_email(
        self,
        to: str,
        subject: str,
        template_id: str,
        data: dict[str, Any],
        attachments: list[EmailAttachment] | None = None,
    ) -> None: ...


def _as_fastapi_mail_attachment(attachment: EmailAttachment) -> dict[str, Any]:
    return {
        "file": UploadFile(file=io.BytesIO(attachment.content), filename=attachment.filename),
        "headers": {
            "Content-ID": f"<{attachment.content_id}>",
            "Content-Disposition": f"inline; filename=\"{attachment.filename}\"",
        },
        "mime_type": attachment.mime_type,
        "mime_subtype": attachment.mime_subtype,
    }


class FastMailEmailSender:
    """
    Renders ``templates/email/<template_id>.html`` (Jinja2) and delivers it over SMTP.

    Callers are synchronous (request threads, the reaper thread), so every send
    drives fastapi-mail's coroutine to completion on a private event loop.
    """

    def __init__(self, settings: MailSettings, template_folder: Path = TEMPLATE_FOLDER):
        self.config = ConnectionConfig(
            MAIL_USERNAME=settings.username,
            MAIL_PASSWORD=settings.password,
            MAIL_FROM=settings.mail_from,
            MAIL_PORT=settings.port,
            MAIL_SERVER=settings.server,
            MAIL_FROM_NAME=settings.from_name,
            MAIL_STARTTLS=settings.starttls,
            MAIL_SSL_TLS=settings.ssl_tls,
            USE_CREDENTIALS=settings.use_credentials,
            TEMPLATE_FOLDER=template_folder,
        )

    def send_email(
        self,
        to: str,
        subject: str,
        template_id: str,
        data: dict[str, Any],
        attachments: list[EmailAttachment] | None = None,
    ) -> None:
        message = MessageSchema(
            subject=subject,
            recipients=[to],
            template_body=data,
            subtype=MessageType.html,
            attachments=[_as_fastapi_mail_attachment(item) for item in attachments or []],
        )
        fm = FastMail(self.config)
        asyncio.run(fm.send_message(message, template_name=f"{template_id}.html"))
        logger.info(
            "Email sent to=%s template=%s attachments=%s",
            to,
            template_id,
            len(attachments or []),
        )


class LoggingEmailSender:
    """Used when MAIL_ENABLED is false."""

    def send_email(
        self,
        to: str,
        subject: str,
        template_id: str,
        data: dict[str, Any],
        attachments: list[EmailAttachment] | None = None,
    ) -> None:
        logger.info(
            "Email delivery disabled; would send to=%s subject=%r template=%s attachments=%s",
            to,
            subject,
            template_id,
            len(attachments or []),
        )


def build_email_sender(settings: MailSettings) -> EmailSender:
    if settings.enabled:
        return FastMailEmailSender(settings)
    return LoggingEmailSender()
