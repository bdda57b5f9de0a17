from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Callable, List, Literal, Optional, Sequence

from pydantic import BaseModel
from twilio.rest import Client as TwilioClient

from autoshop.errors import ExternalServiceError, ValidationFailed
from autoshop.settings import ShopSettings

logger = logging.getLogger(__name__)

Channel = Literal["email", "sms"]


class Recipient(BaseModel):
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None


class NotificationService:
    """
    Envoi email (SMTP) / SMS (Twilio), séquentiel, un message par destinataire.
    Pas de file d'attente ni de relance : une erreur remonte en ExternalServiceError.
    """

    def __init__(
        self,
        settings: ShopSettings,
        smtp_factory: Optional[Callable[[], smtplib.SMTP]] = None,
        sms_client: Optional[TwilioClient] = None,
    ) -> None:
        self.settings = settings
        self._smtp_factory = smtp_factory
        self._sms_client = sms_client

    def send(
        self,
        channel: Channel,
        recipients: Sequence[Recipient],
        message: str,
        subject: Optional[str] = None,
    ) -> int:
        if not recipients:
            raise ValidationFailed("At least one recipient is required")
        if not (message or "").strip():
            raise ValidationFailed("Message is empty")
        if channel == "email":
            return self._send_email(recipients, message, subject or self.settings.company.name)
        if channel == "sms":
            return self._send_sms(recipients, message)
        raise ValidationFailed(f"Invalid channel: {channel}")

    # ---------- Email ---------- #

    def _open_smtp(self) -> smtplib.SMTP:
        if self._smtp_factory:
            return self._smtp_factory()
        conf = self.settings.smtp
        if not conf.configured:
            raise ExternalServiceError("email", "SMTP is not configured", code="PROVIDER_NOT_CONFIGURED")
        smtp = smtplib.SMTP(conf.host, conf.port, timeout=30)
        if conf.use_tls:
            smtp.starttls()
        if conf.username:
            smtp.login(conf.username, conf.password)
        return smtp

    def _build_email(self, to: str, message: str, subject: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.smtp.sender or self.settings.company.email
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(message)
        msg.add_alternative(f"<p>{escape(message).replace(chr(10), '<br>')}</p>", subtype="html")
        return msg

    def _send_email(self, recipients: Sequence[Recipient], message: str, subject: str) -> int:
        targets = [r.email for r in recipients if r.email]
        if not targets:
            raise ValidationFailed("No recipient has an email address")
        try:
            with self._open_smtp() as smtp:
                for to in targets:
                    smtp.send_message(self._build_email(to, message, subject))
        except ExternalServiceError:
            raise
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Email dispatch failed")
            raise ExternalServiceError("email", "Failed to send notification", code="PROVIDER_ERROR") from e
        logger.info("Email sent to %d recipient(s): %s", len(targets), subject)
        return len(targets)

    # ---------- SMS ---------- #

    def _get_sms_client(self) -> TwilioClient:
        if self._sms_client is None:
            conf = self.settings.twilio
            if not conf.configured:
                raise ExternalServiceError("sms", "SMS provider not configured", code="PROVIDER_NOT_CONFIGURED")
            self._sms_client = TwilioClient(conf.account_sid, conf.auth_token)
        return self._sms_client

    def _send_sms(self, recipients: Sequence[Recipient], message: str) -> int:
        targets: List[str] = [r.phone for r in recipients if r.phone]
        if not targets:
            raise ValidationFailed("No recipient has a phone number")
        client = self._get_sms_client()
        for to in targets:
            try:
                client.messages.create(body=message, from_=self.settings.twilio.from_number, to=to)
            except Exception as e:
                logger.exception("SMS dispatch failed for %s", to)
                raise ExternalServiceError("sms", "Unable to send SMS through provider", code="PROVIDER_ERROR") from e
        logger.info("SMS sent to %d recipient(s)", len(targets))
        return len(targets)
