"""Tests for email templates."""
from datetime import datetime

from email_templates import format_email_date, render_quote_email, render_quote_subject


def _quote_data(**overrides):
    data = {
        'quote': "Slow work is still work.",
        'title': "In The Studio",
        'url': "https://magazine.org/interviews/in-the-studio",
        'attribution': "Jane Doe",
        'date': "Monday, March 3, 2025",
    }
    data.update(overrides)
    return data


def test_format_email_date():
    assert format_email_date(datetime(2025, 3, 3)) == "Monday, March 3, 2025"


def test_render_quote_subject():
    assert render_quote_subject(_quote_data()) == "Quote of the Day: In The Studio"


def test_render_quote_email_html():
    html, _ = render_quote_email(_quote_data())

    assert html.startswith("<!DOCTYPE html>")
    assert "Slow work is still work." in html
    assert "In The Studio" in html
    assert 'href="https://magazine.org/interviews/in-the-studio"' in html
    assert "Jane Doe" in html
    assert "Monday, March 3, 2025" in html


def test_render_quote_email_text():
    _, text = render_quote_email(_quote_data())

    assert text.startswith("Quote of the Day - Monday, March 3, 2025")
    assert 'From: "In The Studio"' in text
    assert "Source: https://magazine.org/interviews/in-the-studio" in text
    assert '"Slow work is still work."' in text
    assert "  - Jane Doe" in text
    assert "<" not in text


def test_html_values_are_escaped():
    html, text = render_quote_email(_quote_data(
        quote="Use <b>bold</b> & brave colors",
        title='The "Loud" Issue',
    ))

    assert "<b>bold</b>" not in html
    assert "&lt;b&gt;bold&lt;/b&gt; &amp; brave colors" in html
    assert "The &quot;Loud&quot; Issue" in html
    # Plain text keeps the raw characters
    assert "Use <b>bold</b> & brave colors" in text


def test_attribution_is_optional():
    html, text = render_quote_email(_quote_data(attribution=None))

    assert "Jane Doe" not in html
    assert "  - " not in text


def test_missing_date_defaults_to_today():
    _, text = render_quote_email(_quote_data(date=None))
    assert format_email_date() in text
