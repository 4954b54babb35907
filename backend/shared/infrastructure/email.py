"""
SMTP email sending.

Sending is best-effort: send() returns False instead of raising, so a mail
outage never fails the operation that triggered the message.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from shared.config.settings import settings
from shared.config.logging import get_logger, mask_email

logger = get_logger(__name__)


class EmailSender:
    """Sends multipart (plain + HTML) email through a configured SMTP relay."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        from_email: str = "noreply@hospitality.local",
        timeout: int = 10,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "EmailSender":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_email=settings.smtp_from_email,
            timeout=settings.smtp_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host)

    def send(self, to: str, subject: str, html_body: str, text_body: str | None = None) -> bool:
        """
        Send an email.

        Returns:
            True if the relay accepted the message.
        """
        if not self.configured:
            logger.warning("Email not configured, message dropped", to=mask_email(to), subject=subject)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg.attach(MIMEText(text_body or subject, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email", to=mask_email(to), subject=subject, error=str(e))
            return False

        logger.info("Email sent", to=mask_email(to), subject=subject)
        return True
