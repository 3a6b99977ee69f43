import logging
from typing import List, Optional

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType

from constructpm.core.config import settings, BASE_DIR

logger = logging.getLogger(__name__)

# Event types that have an e-mail template
EMAIL_TEMPLATES = {
    "PHASE_STATUS_CHANGED": "emails/phase_status.html",
    "REVIEW_REQUESTED": "emails/review_requested.html",
    "CHECKLIST_COMPLETED": "emails/checklist_completed.html",
    "DOCUMENT_STATUS_CHANGED": "emails/document_status.html",
    "COMMENT_ADDED": "emails/phase_comment.html",
}

_conf: Optional[ConnectionConfig] = None

def get_mail_config() -> ConnectionConfig:
    global _conf
    if _conf is None:
        _conf = ConnectionConfig(
            MAIL_USERNAME=settings.MAIL_USERNAME,
            MAIL_PASSWORD=settings.MAIL_PASSWORD,
            MAIL_FROM=settings.MAIL_FROM,
            MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
            MAIL_PORT=settings.MAIL_PORT,
            MAIL_SERVER=settings.MAIL_SERVER,
            MAIL_STARTTLS=settings.MAIL_STARTTLS,
            MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
            USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
            VALIDATE_CERTS=True,
            SUPPRESS_SEND=not settings.MAIL_ENABLED,
            TEMPLATE_FOLDER=BASE_DIR / "templates",
        )
    return _conf

async def send_template_email(recipients: List[str], subject: str, template_name: str, body: dict):
    """
    Send an HTML e-mail rendered from templates/<template_name>.
    Errors are logged; mail problems never fail the request that caused them.
    """
    if not recipients:
        return
    message = MessageSchema(
        subject=subject,
        recipients=recipients,
        template_body={**body, "base_url": settings.BASE_URL, "project_name": settings.PROJECT_NAME},
        subtype=MessageType.html,
    )
    try:
        fm = FastMail(get_mail_config())
        await fm.send_message(message, template_name=template_name)
    except Exception:
        logger.exception("Failed to send e-mail '%s' to %s", subject, recipients)

async def send_notification_email(recipient: str, notification_type: str, title: str, message: str, data: dict = None):
    template_name = EMAIL_TEMPLATES.get(notification_type)
    if template_name is None:
        return
    await send_template_email(
        [recipient],
        subject=title,
        template_name=template_name,
        body={"title": title, "message": message, "data": data or {}},
    )
