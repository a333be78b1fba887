"""
Interview store backed by a local JSON document.

The document is a JSON array of {"url": ..., "text": ...} objects, usually
produced by interview_scraper.py. Entries are cleaned into immutable
InterviewRecord objects and cached; any read after the freshness window
transparently reloads the whole collection before serving.
"""

import json
import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import urlparse

from logger import get_logger


logger = get_logger()

DEFAULT_MAX_AGE = timedelta(minutes=5)
MIN_CONTENT_LENGTH = 100

NAVIGATION_TOKENS = ("home", "about")

_WHITESPACE_RUN = re.compile(r"\s+")
_BLANK_LINES = re.compile(r"\n\s*\n")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n]")


class DataFormatError(Exception):
    """Raised when the interview document is not a JSON array."""
    pass


class EmptyCollectionError(Exception):
    """Raised when no usable interview is available after loading."""
    pass


class NotFoundError(Exception):
    """Raised when an interview id is not in the collection."""
    pass


@dataclass(frozen=True)
class InterviewRecord:
    """A single cleaned interview."""

    id: str
    url: str
    title: str
    content: str
    source: str
    loaded_at: datetime


@dataclass(frozen=True)
class InterviewCollection:
    """Every valid record from one load, plus when that load happened."""

    records: Tuple[InterviewRecord, ...]
    loaded_at: datetime

    def is_stale(self, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - self.loaded_at > max_age


@dataclass(frozen=True)
class InterviewStats:
    total: int = 0
    average_length: int = 0
    sources: List[str] = field(default_factory=list)
    last_loaded: Optional[datetime] = None


def extract_title(text: str, url: str) -> str:
    """
    Derive a display title for an interview.

    Looks at the first five non-empty lines of the raw text and picks the
    first one that looks like a heading. Falls back to the last path
    segment of the URL, and finally to "Interview".

    Args:
        text: Raw interview text
        url: Source URL

    Returns:
        Title string
    """
    lines = [line.strip() for line in text.split("\n") if line.strip()]

    for line in lines[:5]:
        lowered = line.lower()
        # Skip very short lines and navigation links
        if len(line) < 10 or any(token in lowered for token in NAVIGATION_TOKENS):
            continue
        if 10 <= len(line) <= 100 and ".com" not in line:
            return line

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "Interview"

    segments = [part for part in parsed.path.split("/") if part]
    slug = segments[-1] if segments else "interview"
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " "))


def extract_source(url: str) -> str:
    """Return the URL's hostname without a leading "www."."""
    hostname = urlparse(url).hostname
    if not hostname:
        return "Unknown Source"
    return hostname[4:] if hostname.startswith("www.") else hostname


def clean_content(content: str) -> str:
    """
    Normalize interview body text.

    Collapses whitespace runs, collapses blank-line runs to a single blank
    line, and strips everything outside printable ASCII except newlines.
    """
    cleaned = _WHITESPACE_RUN.sub(" ", content)
    cleaned = _BLANK_LINES.sub("\n\n", cleaned)
    cleaned = _NON_PRINTABLE.sub("", cleaned)
    return cleaned.strip()


class InterviewReader:
    """
    Loads and serves interviews from a JSON document.

    The collection is owned exclusively by the reader and is always replaced
    wholesale, so callers never observe a partially rebuilt collection.
    """

    def __init__(
        self,
        file_path: Union[str, Path] = Path("data") / "interviews.json",
        max_age: timedelta = DEFAULT_MAX_AGE
    ):
        self.file_path = Path(file_path)
        self.max_age = max_age
        self._collection: Optional[InterviewCollection] = None

    @property
    def collection(self) -> Optional[InterviewCollection]:
        return self._collection

    def load(self) -> List[InterviewRecord]:
        """
        Read the document and rebuild the collection.

        Returns:
            The loaded records

        Raises:
            OSError: If the file cannot be read
            DataFormatError: If the content is not a JSON array
        """
        logger.info(f"Loading interviews from {self.file_path}")

        raw = self.file_path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DataFormatError(f"Interview file is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise DataFormatError("Interview data must be an array of objects")

        loaded_at = datetime.now(timezone.utc)
        records = []
        # Ids count well-formed entries, including ones later dropped as too short
        position = 0
        for entry in data:
            if not isinstance(entry, dict):
                continue
            url, text = entry.get("url"), entry.get("text")
            if not isinstance(url, str) or not isinstance(text, str) or not url or not text:
                continue
            position += 1

            record = InterviewRecord(
                id=f"interview-{position}",
                url=url,
                title=extract_title(text, url),
                content=clean_content(text),
                source=extract_source(url),
                loaded_at=loaded_at,
            )
            if len(record.content) > MIN_CONTENT_LENGTH:
                records.append(record)

        self._collection = InterviewCollection(records=tuple(records), loaded_at=loaded_at)

        logger.info(
            f"Loaded {len(records)} interviews successfully",
            extra={"metadata": {"entries": len(data), "skipped": len(data) - len(records)}}
        )
        return list(records)

    def _fresh_collection(self) -> InterviewCollection:
        if self._collection is None or self._collection.is_stale(self.max_age):
            self.load()
        return self._collection

    def get_random(self) -> InterviewRecord:
        """
        Return a uniformly random interview, reloading first if stale.

        Raises:
            EmptyCollectionError: If no valid interview exists
        """
        records = self._fresh_collection().records
        if not records:
            raise EmptyCollectionError("No interviews available")

        interview = random.choice(records)
        logger.info(
            f'Selected random interview: "{interview.title}" from {interview.source}',
            extra={"metadata": {"interview_id": interview.id, "content_length": len(interview.content)}}
        )
        return interview

    def get_all(self) -> List[InterviewRecord]:
        return list(self._fresh_collection().records)

    def get_by_id(self, interview_id: str) -> InterviewRecord:
        for interview in self._fresh_collection().records:
            if interview.id == interview_id:
                return interview
        raise NotFoundError(f'Interview with id "{interview_id}" not found')

    def stats(self) -> InterviewStats:
        """Summarize the cached collection without triggering a load."""
        if self._collection is None:
            return InterviewStats()

        records = self._collection.records
        total_length = sum(len(r.content) for r in records)
        return InterviewStats(
            total=len(records),
            average_length=round(total_length / len(records)) if records else 0,
            sources=sorted({r.source for r in records}),
            last_loaded=self._collection.loaded_at,
        )

    def reload(self) -> List[InterviewRecord]:
        self._collection = None
        return self.load()
