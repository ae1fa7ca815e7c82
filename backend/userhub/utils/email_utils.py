# userhub/utils/email_utils.py
import logging
import smtplib
from email.message import EmailMessage

from fastapi import Request
from fastapi.concurrency import run_in_threadpool

from userhub.core.config import Settings
from userhub.core.error_messages import MailDeliveryError

logger = logging.getLogger(__name__)

VERIFY_SUBJECT = "Verify Your Email Address"


def verification_link(base_url: str, verification_token: str) -> str:
    return f"{base_url.rstrip('/')}/users/verify/{verification_token}"


class Mailer:
    """Sends mail through one SMTP relay. A connection is opened per message."""

    def __init__(self, host: str, port: int, user: str, password: str, sender: str,
                 base_url: str, use_ssl: bool = False, timeout: float = 30.0):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.base_url = base_url
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.SMTP_SERVER,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.mail_sender,
            base_url=settings.BASE_URL,
            use_ssl=settings.SMTP_USE_SSL,
        )

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        smtp.starttls()
        return smtp

    def send_email(self, to_email: str, subject: str, html: str):
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        msg.set_content("Please open this message in an HTML-capable mail client.")
        msg.add_alternative(html, subtype="html")

        try:
            with self._connect() as smtp:
                if self.user:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(internal=f"SMTP send to {to_email} failed: {e}")
        logger.info("Email sent to %s", to_email)

    async def send_verification_email(self, to_email: str, verification_token: str):
        link = verification_link(self.base_url, verification_token)
        html = f'<p>Please click <a href="{link}">here</a> to verify your email address.</p>'
        # smtplib is blocking; keep it off the event loop
        await run_in_threadpool(self.send_email, to_email, VERIFY_SUBJECT, html)


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
