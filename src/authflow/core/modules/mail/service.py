"""Outbound mail for confirmation tokens."""

import asyncio
import smtplib
from email.message import EmailMessage

import structlog

from authflow.core.modules.mail.models import MailMessage
from authflow.core.service import Service

logger = structlog.get_logger(__name__)


class MailService(Service):
    """Delivers messages over SMTP, or only logs them when no SMTP host is configured."""

    async def send(self, message: MailMessage) -> None:
        if not self.config.smtp_host:
            logger.info("mail_not_sent_no_smtp", to=message.to, subject=message.subject)
            return
        await asyncio.to_thread(self._deliver, message)
        logger.debug("mail_sent", to=message.to, subject=message.subject)

    def _deliver(self, message: MailMessage) -> None:
        email = EmailMessage()
        email["From"] = self.config.mail_from
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)
        with smtplib.SMTP(host=self.config.smtp_host or "", port=self.config.smtp_port, timeout=10) as smtp:
            smtp.send_message(email)

    def registration_code(self, to: str, code: str) -> MailMessage:
        return MailMessage(to=to, subject="Confirm your account", body=f"Your verification code is {code}.")

    def email_update_token(self, to: str, token: str) -> MailMessage:
        return MailMessage(
            to=to,
            subject="Confirm your new email address",
            body=f"Use this token to confirm the change of your account email: {token}",
        )

    def email_update_notice(self, to: str, new_email: str, revoke_token: str) -> MailMessage:
        return MailMessage(
            to=to,
            subject="Your email address is about to change",
            body=(
                f"A change of your account email to {new_email} was requested.\n"
                f"If this was not you, cancel it with this token: {revoke_token}"
            ),
        )

    def password_reset_token(self, to: str, token: str) -> MailMessage:
        return MailMessage(to=to, subject="Reset your password", body=f"Use this token to reset your password: {token}")
