"""Tests for the JSON-backed interview store."""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from interview_reader import (
    DataFormatError,
    EmptyCollectionError,
    InterviewCollection,
    InterviewReader,
    NotFoundError,
    clean_content,
    extract_source,
    extract_title,
)
from conftest import LONG_TEXT


def _entry(url, text=LONG_TEXT):
    return {"url": url, "text": text}


class TestLoad:

    def test_keeps_only_valid_entries(self, write_interviews):
        path = write_interviews([
            _entry("https://a.com/interviews/first"),
            _entry("https://a.com/interviews/short", "Too short to keep."),
            {"url": "https://a.com/no-text"},
            _entry("https://b.com/interviews/second"),
        ])
        reader = InterviewReader(path)

        records = reader.load()

        assert [r.id for r in records] == ["interview-1", "interview-3"]
        assert all(len(r.content) > 100 for r in records)
        assert records[0].loaded_at == records[1].loaded_at == reader.collection.loaded_at

    def test_ignores_non_object_entries(self, write_interviews):
        path = write_interviews(["just a string", 42, _entry("https://a.com/x")])
        records = InterviewReader(path).load()
        assert [r.id for r in records] == ["interview-1"]

    def test_ids_skip_malformed_entries(self, write_interviews):
        path = write_interviews([{"url": "https://a.com/bad"}, _entry("https://a.com/1", "x" * 200)])
        reader = InterviewReader(path)

        assert [r.id for r in reader.get_all()] == ["interview-1"]
        assert reader.get_by_id("interview-1").url == "https://a.com/1"

    def test_content_is_cleaned(self, write_interviews):
        messy = "  Creativity\t\tis   a long\n\n\n conversation  " + LONG_TEXT + "— end "
        path = write_interviews([_entry("https://a.com/x", messy)])

        record = InterviewReader(path).load()[0]

        assert "  " not in record.content
        assert "—" not in record.content
        assert record.content == record.content.strip()

    def test_non_array_document_raises(self, write_interviews):
        path = write_interviews({"url": "https://a.com", "text": LONG_TEXT})
        with pytest.raises(DataFormatError):
            InterviewReader(path).load()

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[{not json", encoding="utf-8")
        with pytest.raises(DataFormatError):
            InterviewReader(path).load()

    def test_missing_file_raises_os_error(self, tmp_path):
        with pytest.raises(OSError):
            InterviewReader(tmp_path / "missing.json").load()

    def test_failed_reload_keeps_previous_collection(self, write_interviews):
        path = write_interviews([_entry("https://a.com/x")])
        reader = InterviewReader(path)
        reader.load()
        before = reader.collection

        path.write_text("{}", encoding="utf-8")
        with pytest.raises(DataFormatError):
            reader.load()

        assert reader.collection is before


class TestRetrieval:

    def test_get_random_returns_a_loaded_record(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1"), _entry("https://a.com/2")])
        reader = InterviewReader(path)

        interview = reader.get_random()

        assert interview.url in ("https://a.com/1", "https://a.com/2")

    def test_get_random_eventually_returns_every_record(self, write_interviews):
        urls = [f"https://a.com/{n}" for n in range(4)]
        reader = InterviewReader(write_interviews([_entry(url) for url in urls]))

        seen = {reader.get_random().url for _ in range(200)}

        assert seen == set(urls)

    def test_get_random_on_empty_collection_raises(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1", "short")])
        with pytest.raises(EmptyCollectionError):
            InterviewReader(path).get_random()

    def test_get_by_id(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1"), _entry("https://a.com/2")])
        reader = InterviewReader(path)

        assert reader.get_by_id("interview-2").url == "https://a.com/2"
        with pytest.raises(NotFoundError):
            reader.get_by_id("interview-99")

    def test_get_all_returns_copy(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1")])
        reader = InterviewReader(path)

        everything = reader.get_all()
        everything.clear()

        assert len(reader.get_all()) == 1

    def test_fresh_collection_is_not_reloaded(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1")])
        reader = InterviewReader(path)
        reader.load()

        with patch.object(reader, "load", wraps=reader.load) as load:
            reader.get_random()
            load.assert_not_called()

    def test_stale_collection_is_reloaded(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1")])
        reader = InterviewReader(path, max_age=timedelta(minutes=5))
        reader.load()
        reader._collection = InterviewCollection(
            records=reader.collection.records,
            loaded_at=datetime.now(timezone.utc) - timedelta(minutes=6),
        )
        write_interviews([_entry("https://a.com/1"), _entry("https://a.com/2")])

        assert len(reader.get_all()) == 2

    def test_reload_rereads_file(self, write_interviews):
        path = write_interviews([_entry("https://a.com/1")])
        reader = InterviewReader(path)
        reader.load()
        write_interviews([_entry("https://a.com/1"), _entry("https://a.com/2")])

        assert len(reader.reload()) == 2


class TestStats:

    def test_zeroed_before_first_load(self, write_interviews):
        reader = InterviewReader(write_interviews([_entry("https://a.com/1")]))

        stats = reader.stats()

        assert stats.total == 0
        assert stats.average_length == 0
        assert stats.sources == []
        assert stats.last_loaded is None
        assert reader.collection is None

    def test_summarizes_loaded_collection(self, write_interviews):
        path = write_interviews([
            _entry("https://www.a.com/1"),
            _entry("https://b.com/2"),
            _entry("https://a.com/3"),
        ])
        reader = InterviewReader(path)
        reader.load()

        stats = reader.stats()

        assert stats.total == 3
        assert stats.average_length == len(clean_content(LONG_TEXT))
        assert stats.sources == ["a.com", "b.com"]
        assert stats.last_loaded == reader.collection.loaded_at


class TestCollectionStaleness:

    def test_is_stale_after_max_age(self):
        loaded_at = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
        collection = InterviewCollection(records=(), loaded_at=loaded_at)

        assert not collection.is_stale(timedelta(minutes=5), now=loaded_at + timedelta(minutes=5))
        assert collection.is_stale(timedelta(minutes=5), now=loaded_at + timedelta(minutes=5, seconds=1))


class TestExtractTitle:

    def test_uses_first_heading_like_line(self):
        text = "Home\nAbout us\nA Conversation With The Painter\nBody text follows."
        assert extract_title(text, "https://a.com/x") == "A Conversation With The Painter"

    def test_skips_lines_with_domains(self):
        text = "Read more at example.com today\nA Conversation With The Painter"
        assert extract_title(text, "https://a.com/x") == "A Conversation With The Painter"

    def test_only_first_five_lines_are_considered(self):
        text = "a\nb\nc\nd\ne\nA Conversation With The Painter"
        assert extract_title(text, "https://a.com/interviews/on-painting") == "On Painting"

    def test_falls_back_to_url_slug(self):
        assert extract_title("x" * 150, "https://a.com/interviews/jane-doe-in-studio") == "Jane Doe In Studio"

    def test_title_is_deterministic(self, write_interviews):
        text = "Home\nA Conversation With The Painter\n" + LONG_TEXT
        titles = {extract_title(text, "https://a.com/x") for _ in range(5)}
        assert titles == {"A Conversation With The Painter"}

        path = write_interviews([_entry("https://a.com/interviews/on-painting")])
        reader = InterviewReader(path)
        first = reader.load()[0].title
        assert reader.reload()[0].title == first == "On Painting"

    def test_falls_back_to_interview_for_invalid_url(self):
        assert extract_title("x" * 150, "not a url") == "Interview"


class TestExtractSource:

    def test_strips_www(self):
        assert extract_source("https://www.magazine.org/a") == "magazine.org"

    def test_keeps_other_subdomains(self):
        assert extract_source("https://blog.magazine.org/a") == "blog.magazine.org"

    def test_unknown_source_for_invalid_url(self):
        assert extract_source("nonsense") == "Unknown Source"


class TestCleanContent:

    def test_collapses_whitespace_and_trims(self):
        assert clean_content("  one\t two \n\n\n three  ") == "one two three"

    def test_strips_non_ascii(self):
        assert clean_content("café “quoted”") == "caf quoted"
