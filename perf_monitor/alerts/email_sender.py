"""
Email Sender - Sends alert emails via SMTP with bounded retry
"""

import logging
import smtplib
import socket
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from ..errors import DeliveryFailed, Rejected
from .messages import NotificationMessage

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30
SSL_PORT = 465


class TransientSMTPError(Exception):
    """Delivery attempt failed in a way worth retrying"""


def _is_permanent_code(code) -> bool:
    return isinstance(code, int) and 500 <= code < 600


class EmailSender:
    """Handles sending notification emails"""

    def __init__(self, config, retry_budget: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize email sender

        Args:
            config: ConfigLoader with a validated `email` section
            retry_budget: Seconds after which no further retry is started
            sleep: Sleep function used between attempts
        """
        self.config = config
        self.retry_budget = retry_budget
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.config.is_email_enabled()

    @property
    def max_attempts(self) -> int:
        return int(self.config.get('email.retry_attempts', 3))

    def _build_mime(self, message: NotificationMessage) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = message.subject
        msg['From'] = self.config.get('email.sender_email')
        msg['To'] = ', '.join(self.config.get_recipients())

        msg.attach(MIMEText(message.body, 'plain', 'utf-8'))
        if message.html_body:
            msg.attach(MIMEText(message.html_body, 'html', 'utf-8'))
        return msg

    def _deliver(self, msg: MIMEMultipart):
        """
        One delivery attempt

        Raises:
            Rejected: Permanent failure
            TransientSMTPError: Failure worth retrying
        """
        smtp_server = self.config.get('email.smtp_server')
        smtp_port = self.config.get('email.smtp_port')
        sender_email = self.config.get('email.sender_email')
        sender_password = self.config.get('email.sender_password')
        use_tls = self.config.get('email.use_tls', True)
        timeout = self.config.get('email.timeout', 30)

        try:
            if smtp_port == SSL_PORT:
                server = smtplib.SMTP_SSL(smtp_server, smtp_port, timeout=timeout)
            else:
                server = smtplib.SMTP(smtp_server, smtp_port, timeout=timeout)

            with server:
                if use_tls and smtp_port != SSL_PORT:
                    server.starttls()
                server.login(sender_email, sender_password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise Rejected(f"SMTP authentication rejected: {e.smtp_code} {e.smtp_error!r}") from e
        except smtplib.SMTPNotSupportedError as e:
            raise Rejected(f"SMTP server does not support a required feature: {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            codes = [code for code, _ in e.recipients.values()]
            if codes and all(_is_permanent_code(code) for code in codes):
                raise Rejected(f"Recipients refused: {', '.join(e.recipients)}") from e
            raise TransientSMTPError(f"Recipients temporarily refused: {e.recipients}") from e
        except smtplib.SMTPResponseException as e:
            if _is_permanent_code(e.smtp_code):
                raise Rejected(f"SMTP server rejected message: {e.smtp_code} {e.smtp_error!r}") from e
            raise TransientSMTPError(f"SMTP server error: {e.smtp_code} {e.smtp_error!r}") from e
        except (smtplib.SMTPException, socket.timeout, OSError) as e:
            raise TransientSMTPError(f"SMTP connection failed: {e}") from e

    def _retrying(self) -> Retrying:
        stop = stop_after_attempt(self.max_attempts)
        if self.retry_budget is not None:
            stop = stop | stop_after_delay(self.retry_budget)

        backoff = float(self.config.get('email.retry_backoff_seconds', 1))
        return Retrying(
            stop=stop,
            wait=wait_exponential(multiplier=backoff, min=backoff, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception_type(TransientSMTPError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=False,
        )

    def notify(self, message: NotificationMessage) -> bool:
        """
        Send a notification

        Args:
            message: Rendered message

        Returns:
            True if the email was delivered, False if email is disabled

        Raises:
            Rejected: Permanent failure, not retried
            DeliveryFailed: Transient failures exhausted every attempt
        """
        if not self.enabled:
            logger.info("Email notifications disabled. Skipping: %s", message.subject)
            return False

        msg = self._build_mime(message)
        retrying = self._retrying()

        try:
            retrying(self._deliver, msg)
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            cause = e.last_attempt.exception()
            raise DeliveryFailed(
                f"Email delivery failed after {attempts} attempt(s): {cause}",
                attempts=attempts,
            ) from cause

        recipients = self.config.get_recipients()
        logger.info("Email sent successfully to %d recipient(s): %s", len(recipients), message.subject)
        return True
