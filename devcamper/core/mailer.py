import logging
import smtplib
from email.message import EmailMessage

from fastapi import Request

from devcamper.core.config import Settings

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


class Mailer:
    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.sender = f"{settings.from_name} <{settings.from_email}>"

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.host:
            raise MailError("SMTP_HOST is not configured")

        message = self.build_message(to, subject, body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailError(str(exc)) from exc

        logger.info("Sent %r to %s", subject, to)


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
