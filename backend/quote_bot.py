"""
Quote Bot orchestration.

Composes the interview reader, quote extractor and email sender into a
single "produce and deliver a quote" run, and drives that run either once or
on a cron schedule using APScheduler.

Runs never overlap within a process: a run requested while another is in
flight is skipped (not queued). Every failure aborts only the current run;
in scheduled mode the next firing proceeds normally.
"""

import asyncio
import signal
import time
import uuid
from dataclasses import dataclass
from typing import Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import AppConfig
from email_sender import EmailSender
from email_templates import format_email_date, render_quote_email, render_quote_subject
from interview_reader import InterviewReader, InterviewRecord
from logger import get_logger
from quote_extractor import QuoteExtractor, QuoteResult


logger = get_logger()


class NoContentError(Exception):
    """Raised when the selected interview is missing or has no content."""
    pass


class NoQuoteError(Exception):
    """Raised when the provider finds no suitable quote in the interview."""
    pass


@dataclass(frozen=True)
class RunResult:
    success: bool
    interview_title: str
    interview_url: str
    quote_count: int
    recipient_count: int
    duration_seconds: float


class QuoteBot:
    """
    Produces and delivers one quote per run.

    Components are built from the config unless passed in explicitly.

    Args:
        config: Validated application configuration
        interview_reader: Optional pre-built InterviewReader
        quote_extractor: Optional pre-built QuoteExtractor
        email_sender: Optional pre-built EmailSender
    """

    def __init__(
        self,
        config: AppConfig,
        interview_reader: Optional[InterviewReader] = None,
        quote_extractor: Optional[QuoteExtractor] = None,
        email_sender: Optional[EmailSender] = None
    ):
        self.config = config
        self.interview_reader = interview_reader or InterviewReader(config.data.interviews_file_path)
        self.quote_extractor = quote_extractor or QuoteExtractor(config.ai, config.interviewee_name)
        self.email_sender = email_sender or EmailSender(config.email)
        self.is_running = False

    @property
    def recipients(self):
        return list(self.config.email.recipients)

    def format_email(self, interview: InterviewRecord, quote: QuoteResult):
        """
        Build the subject, plain text and HTML bodies for a quote.

        Returns:
            Tuple of (subject, text_body, html_body)
        """
        quote_data = {
            'quote': quote.text,
            'title': interview.title,
            'url': interview.url,
            'attribution': self.config.interviewee_name,
            'date': format_email_date(),
        }
        html, text = render_quote_email(quote_data)
        return render_quote_subject(quote_data), text, html

    async def process_quote(self) -> Optional[RunResult]:
        """
        Select an interview, extract a quote and email it.

        Returns:
            RunResult on success, or None if a run was already in progress

        Raises:
            NoContentError: If no interview content is available
            NoQuoteError: If the provider found no quote
            Any error from the reader, extractor or sender, unchanged
        """
        if self.is_running:
            logger.warning("Quote processing already in progress, skipping...")
            return None

        self.is_running = True
        run_id = uuid.uuid4().hex[:12]
        log_extra = {"run_id": run_id}
        start_time = time.monotonic()

        try:
            logger.info("Starting quote processing...", extra=log_extra)

            interview = await asyncio.to_thread(self.interview_reader.get_random)
            if interview is None or not interview.content:
                raise NoContentError("No interview content available")

            logger.info(
                f'Processing interview: "{interview.title}" from {interview.source} '
                f'({len(interview.content)} chars)',
                extra=log_extra
            )

            quote = await self.quote_extractor.extract(interview.content, interview.title)
            if quote is None or not quote.text:
                raise NoQuoteError(f'No meaningful quote extracted from "{interview.title}"')

            recipients = self.recipients
            subject, text_body, html_body = self.format_email(interview, quote)
            await self.email_sender.send(recipients, subject, text_body, html_body)

            result = RunResult(
                success=True,
                interview_title=interview.title,
                interview_url=interview.url,
                quote_count=1,
                recipient_count=len(recipients),
                duration_seconds=round(time.monotonic() - start_time, 3),
            )
            logger.info(
                f"Quote processing completed successfully in {result.duration_seconds}s",
                extra={**log_extra, "metadata": {"interview_url": result.interview_url,
                                                 "recipients": result.recipient_count}}
            )
            return result

        except Exception as e:
            logger.error(
                f"Failed to process quote: {e}",
                extra={**log_extra, "metadata": {"error_type": type(e).__name__}}
            )
            raise

        finally:
            self.is_running = False

    async def run_scheduled(self):
        """Scheduler job: one run, with failures logged instead of raised."""
        try:
            await self.process_quote()
        except Exception as e:
            logger.error(f"Scheduled job failed: {e}")

    def create_scheduler(self) -> AsyncIOScheduler:
        """Build the scheduler with the quote job registered (not started)."""
        timezone = pytz.timezone(self.config.schedule.timezone)
        scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1
            },
            timezone=timezone
        )
        scheduler.add_job(
            self.run_scheduled,
            CronTrigger.from_crontab(self.config.schedule.cron_schedule, timezone=timezone),
            id="quote_of_the_day",
            name="Quote of the Day",
            replace_existing=True
        )
        return scheduler

    async def run_once(self) -> int:
        """Run a single quote and return the process exit code."""
        logger.info("Running once and exiting...")
        try:
            await self.process_quote()
        except Exception:
            return 1
        return 0

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> int:
        """
        Run on the configured cron schedule until SIGINT/SIGTERM.

        Args:
            stop_event: Event that ends the loop; created and wired to the
                process signals when omitted

        Returns:
            Exit code 0 after a graceful shutdown
        """
        if stop_event is None:
            stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, stop_event.set)
                except (NotImplementedError, RuntimeError):
                    # Windows event loops; KeyboardInterrupt still ends the run
                    logger.debug(f"Signal handler for {sig!r} not supported on this platform")

        scheduler = self.create_scheduler()
        scheduler.start()
        job = scheduler.get_job("quote_of_the_day")
        logger.info(
            f"Starting scheduled execution with cron: {self.config.schedule.cron_schedule} "
            f"({self.config.schedule.timezone})",
            extra={"metadata": {"next_run": str(job.next_run_time) if job else None}}
        )

        try:
            await stop_event.wait()
        finally:
            logger.info("Received shutdown signal, gracefully shutting down...")
            scheduler.shutdown(wait=False)
        return 0

    async def start(self) -> int:
        """Run once or on schedule depending on config. Returns an exit code."""
        if self.config.schedule.run_once:
            return await self.run_once()
        return await self.run_forever()
