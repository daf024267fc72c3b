"""Email sending service"""
import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any

from jinja2 import Template

from .config import Settings

logger = logging.getLogger(__name__)


TEMPLATES: dict[str, str] = {
    "otp": """Hello {{ name }},

Your verification code is: {{ otp }}

The code will expire in {{ expire_minutes }} minutes.

If this was not you, please ignore this email.

---
{{ app_name }} Team
""",
    "reset_password": """Hello {{ name }},

We received a request to reset your password. Open the link below to choose a new one:

{{ url }}

The link will expire in {{ expire_minutes }} minutes.

If you did not request this, please ignore this email.

---
{{ app_name }} Team
""",
}


class MailTransport:
    """SMTP mail transport with built-in plain text templates

    Sending is at-most-once: failures propagate to the caller and are never
    retried here.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """Render a built-in template

        Raises:
            ValueError: Unknown template id
        """
        source = TEMPLATES.get(template_id)
        if source is None:
            raise ValueError(f"Unknown mail template: {template_id}")
        return Template(source).render(app_name=self.settings.app_name, **context)

    async def send_templated_mail(
        self,
        to: str,
        subject: str,
        template_id: str,
        context: dict[str, Any],
    ) -> None:
        """Render ``template_id`` with ``context`` and send it to ``to``

        Without SMTP credentials the mail is only logged (development mode).
        """
        body = self.render(template_id, context)

        if not self.settings.smtp_user or not self.settings.smtp_password:
            logger.warning(
                "SMTP configuration incomplete, skipping email send "
                "(development mode)"
            )
            logger.info(f"Mail to {to} [{subject}]:\n{body}")
            return

        await asyncio.to_thread(self._send, to, subject, body)
        logger.info(f"Email '{template_id}' sent to {to}")

    def _send(self, to: str, subject: str, body: str) -> None:
        msg = MIMEMultipart()
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain", "utf-8"))

        if self.settings.smtp_use_ssl:
            server = smtplib.SMTP_SSL(self.settings.smtp_host, self.settings.smtp_port)
        else:
            server = smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port)
            server.starttls()

        try:
            server.login(self.settings.smtp_user, self.settings.smtp_password)
            server.send_message(msg)
        finally:
            server.close()
