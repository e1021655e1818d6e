import asyncio
import html
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Tuple

from legalai.config import settings
from legalai.prompts.emails import BASE_STYLE, LAYOUT, TEMPLATES
from legalai.utils.clock import Clock, utcnow
from legalai.utils.logger import logger
from legalai.utils.security import mask_email

# Kinds the user cannot proceed without; skipping them is a failure, not a no-op
REQUIRED_DELIVERY = frozenset({"otp"})


class Notifier:
    """Sends templated notifications. `send` reports success instead of raising."""

    async def send(self, email: str, template_kind: str, data: Dict[str, Any]) -> bool:
        raise NotImplementedError


class EmailNotifier(Notifier):
    def __init__(
        self,
        host: str = settings.EMAIL_HOST,
        port: int = settings.EMAIL_PORT,
        user: Optional[str] = settings.EMAIL_USER,
        password: Optional[str] = settings.EMAIL_PASSWORD,
        sender: Optional[str] = settings.EMAIL_FROM,
        use_tls: bool = settings.EMAIL_USE_TLS,
        enabled: bool = settings.EMAIL_ENABLED,
        timeout: float = settings.EMAIL_TIMEOUT_SECONDS,
        app_url: str = settings.APP_URL,
        clock: Clock = utcnow,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.use_tls = use_tls
        self.enabled = enabled and bool(self.sender)
        self.timeout = timeout
        self.app_url = app_url
        self.clock = clock

        if enabled and not self.sender:
            logger.warning("EMAIL_ENABLED is set but no sender address is configured; emails are disabled.")

    def render(self, template_kind: str, data: Dict[str, Any]) -> Tuple[str, str, str]:
        """Returns (subject, html, text) for a template kind."""
        template = TEMPLATES[template_kind]
        now = self.clock()
        values = {
            "app_url": self.app_url,
            "timestamp": now.strftime("%Y-%m-%d %H:%M UTC"),
            **data,
        }
        escaped = {key: html.escape(str(value)) for key, value in values.items()}
        body = template["html"].format(**escaped)
        page = LAYOUT.format(style=BASE_STYLE, title=template["title"], body=body, year=now.year)
        return template["subject"], page, template["text"].format(**values)

    def _deliver(self, to: str, subject: str, html: str, text: str):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.sendmail(self.sender, [to], msg.as_string())

    async def send(self, email: str, template_kind: str, data: Dict[str, Any]) -> bool:
        subject, html, text = self.render(template_kind, data)

        if not self.enabled:
            if template_kind in REQUIRED_DELIVERY:
                logger.error(f"Email disabled; cannot deliver '{template_kind}' to {mask_email(email)}")
                return False
            logger.warning(f"Email disabled; skipped '{template_kind}' for {mask_email(email)}")
            return True

        try:
            await asyncio.to_thread(self._deliver, email, subject, html, text)
            logger.info(f"Email '{template_kind}' sent to {mask_email(email)}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{template_kind}' email to {mask_email(email)}: {str(e)}")
            return False
