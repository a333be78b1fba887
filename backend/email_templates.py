"""
Email templates for the quote of the day.

This module renders the HTML and plain text bodies of the quote email.
Values are HTML-escaped before they are placed in the HTML body.
"""

from datetime import datetime
from html import escape
from typing import Dict, Optional, Tuple


def format_email_date(when: Optional[datetime] = None) -> str:
    """Format a date like "Monday, March 3, 2025"."""
    when = when or datetime.now()
    return f"{when.strftime('%A, %B')} {when.day}, {when.year}"


def render_quote_subject(quote_data: Dict) -> str:
    return f"Quote of the Day: {quote_data['title']}"


def render_quote_email(quote_data: Dict) -> Tuple[str, str]:
    """
    Render the quote email (HTML and plain text).

    Args:
        quote_data: Dictionary with quote, title, url, attribution and date

    Returns:
        Tuple of (html_body, text_body)
    """
    date = quote_data.get('date') or format_email_date()
    attribution = quote_data.get('attribution') or ''
    attribution_html = ''
    attribution_text = ''
    if attribution:
        attribution_html = (
            '<div style="font-size: 11px; color: #666666; text-transform: uppercase; '
            f'letter-spacing: 1px;">{escape(attribution)}</div>'
        )
        attribution_text = f"  - {attribution}"

    html = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <title>Quote of the Day</title>
    </head>
    <body style="font-family: -apple-system, 'Segoe UI', Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #000000; background: #ffffff;">
        <div style="padding: 40px 30px 30px; border-bottom: 1px solid #e5e5e5;">
            <div style="font-size: 14px; letter-spacing: 2px; text-transform: uppercase;">Quote of the Day</div>
            <div style="font-size: 11px; color: #666666; text-transform: uppercase; letter-spacing: 1px;">{escape(date)}</div>
        </div>

        <div style="padding: 40px 30px;">
            <div style="margin-bottom: 40px; padding-bottom: 20px; border-bottom: 1px solid #f0f0f0;">
                <div style="font-size: 13px; text-transform: uppercase; letter-spacing: 0.5px;">{escape(quote_data['title'])}</div>
                <a href="{escape(quote_data['url'], quote=True)}" style="font-size: 11px; color: #999999; word-break: break-all;">{escape(quote_data['url'])}</a>
            </div>

            <div style="font-size: 16px; line-height: 1.6; font-style: italic; margin: 20px 0;">&ldquo;{escape(quote_data['quote'])}&rdquo;</div>
            {attribution_html}
        </div>

        <hr style="margin-top: 20px; border: none; border-top: 1px solid #e5e7eb;">
        <p style="color: #6b7280; font-size: 12px; padding: 0 30px;">
            Quote Bot - Daily Interview Quote
        </p>
    </body>
    </html>
    """

    text = f"""
Quote of the Day - {date}

From: "{quote_data['title']}"
Source: {quote_data['url']}

"{quote_data['quote']}"
{attribution_text}

---
Quote Bot - Daily Interview Quote
    """

    return html.strip(), text.strip()
