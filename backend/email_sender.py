"""
SMTP email sender for the quote of the day.

Sends multipart/alternative messages (plain text + HTML) through any SMTP
server. Each send opens one session: connect, authenticate, verify with
NOOP, send, close. Delivery errors from the server are not retried here.
"""

import asyncio
import smtplib
import ssl
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import List, Optional

from config import EmailConfig
from email_templates import format_email_date, render_quote_email, render_quote_subject
from logger import get_logger


logger = get_logger()

SAMPLE_QUOTE = {
    'quote': "I think there's something beautiful about the decay, something beautiful about the entropy.",
    'title': "Test Interview",
    'url': "https://example.com",
}


class EmailConfigError(Exception):
    """Raised when host, user or password is missing at first use."""
    pass


class EmailConnectionError(ConnectionError):
    """Raised when the SMTP server cannot be reached, logged into, or verified."""
    pass


class NoRecipientsError(Exception):
    """Raised when a send is attempted with an empty recipient list."""
    pass


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
    recipients: List[str]
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EmailSender:
    """
    SMTP delivery of quote emails.

    Construction never fails: an incomplete configuration is logged and the
    sender marks itself unconfigured, so the error surfaces on first use.
    """

    def __init__(self, config: EmailConfig):
        self.config = config
        self._smtp: Optional[smtplib.SMTP] = None
        self.is_configured = self._validate_config()

    def _validate_config(self) -> bool:
        missing = [key for key in ('host', 'user', 'password') if not getattr(self.config, key)]
        if missing:
            logger.error(f"Missing required email configuration: {', '.join(missing)}")
            return False
        return True

    def _connect(self) -> smtplib.SMTP:
        if self.config.secure:
            smtp = smtplib.SMTP_SSL(
                self.config.host,
                self.config.port,
                context=ssl.create_default_context()
            )
        else:
            smtp = smtplib.SMTP(self.config.host, self.config.port)
            smtp.ehlo()
            if smtp.has_extn('starttls'):
                smtp.starttls(context=ssl.create_default_context())
                smtp.ehlo()
        return smtp

    def _verify(self, smtp: smtplib.SMTP):
        code, response = smtp.noop()
        if code != 250:
            raise EmailConnectionError(f"SMTP liveness check failed: {code} {response!r}")

    def _init(self):
        if self._smtp is not None:
            return
        if not self.is_configured:
            raise EmailConfigError("Email configuration is incomplete")

        logger.info(f"Initializing SMTP transport to {self.config.host}:{self.config.port}")
        smtp = None
        try:
            smtp = self._connect()
            smtp.login(self.config.user, self.config.password)
            self._verify(smtp)
        except EmailConnectionError:
            self._quit(smtp)
            raise
        except (smtplib.SMTPException, OSError) as e:
            self._quit(smtp)
            logger.error(f"Failed to initialize SMTP transport: {e}")
            raise EmailConnectionError(f"Could not connect to {self.config.host}:{self.config.port}: {e}") from e

        self._smtp = smtp
        logger.info("SMTP transport initialized and verified successfully")

    @staticmethod
    def _quit(smtp: Optional[smtplib.SMTP]):
        if smtp is None:
            return
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug(f"SMTP quit failed: {e}")

    def _close(self):
        smtp, self._smtp = self._smtp, None
        self._quit(smtp)

    def _init_and_close(self):
        try:
            self._init()
        finally:
            self._close()

    async def init(self):
        """
        Open, verify and close an SMTP session.

        No session is left open afterwards; every send opens its own.

        Raises:
            EmailConfigError: If host, user or password is missing
            EmailConnectionError: If connecting, login or NOOP fails
        """
        await asyncio.to_thread(self._init_and_close)

    def build_message(self, recipients: List[str], subject: str, text_body: str, html_body: str) -> MIMEMultipart:
        message = MIMEMultipart('alternative')
        message['From'] = self.config.from_address
        message['To'] = ', '.join(recipients)
        message['Subject'] = subject
        message['Date'] = formatdate(localtime=True)
        domain = self.config.from_address.rpartition('@')[2] or None
        message['Message-ID'] = make_msgid(domain=domain)

        # Text first so HTML-capable clients prefer the last (HTML) part
        message.attach(MIMEText(text_body, 'plain', 'utf-8'))
        message.attach(MIMEText(html_body, 'html', 'utf-8'))
        return message

    def _send(self, recipients: List[str], message: MIMEMultipart):
        self._init()
        try:
            self._smtp.sendmail(self.config.from_address, recipients, message.as_string())
        finally:
            self._close()

    async def send(
        self,
        recipients: List[str],
        subject: str,
        text_body: str,
        html_body: str
    ) -> DeliveryReceipt:
        """
        Send one message to every recipient.

        Args:
            recipients: Email addresses, joined into a single To header
            subject: Email subject
            text_body: Plain text body
            html_body: HTML body

        Returns:
            DeliveryReceipt with the Message-ID header value

        Raises:
            NoRecipientsError: If recipients is empty (before any network call)
            EmailConfigError / EmailConnectionError: From init()
            smtplib.SMTPException: Delivery failures, unchanged
        """
        if not recipients:
            raise NoRecipientsError("No recipients specified")

        logger.info(f"Sending email to {len(recipients)} recipients")
        message = self.build_message(recipients, subject, text_body, html_body)

        try:
            await asyncio.to_thread(self._send, recipients, message)
        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            raise

        receipt = DeliveryReceipt(message_id=message['Message-ID'], recipients=list(recipients))
        logger.info(
            f"Email sent successfully: {receipt.message_id}",
            extra={"metadata": {"recipients": receipt.recipients}}
        )
        return receipt

    def _test_connection(self) -> bool:
        try:
            self._init()
            self._verify(self._smtp)
            logger.info("Email connection test successful")
            return True
        except Exception as e:
            logger.error(f"Email connection test failed: {e}")
            return False
        finally:
            self._close()

    async def test_connection(self) -> bool:
        """Check SMTP connectivity, returning False instead of raising."""
        return await asyncio.to_thread(self._test_connection)

    async def send_test_email(self, recipient: str) -> DeliveryReceipt:
        """Send the sample quote to a single address, for setup checks."""
        quote_data = dict(SAMPLE_QUOTE, date=format_email_date())
        html, text = render_quote_email(quote_data)
        return await self.send([recipient], render_quote_subject(quote_data), text, html)
