"""
Headless-browser collection of interview pages.

Visits an index page, gathers links that look like interviews, and captures
each page's visible text. The output is the same {"url", "text"} array that
InterviewReader consumes; merge_interviews() folds new pages into an
existing file without touching entries already there.

Requires the optional `scraper` extra (playwright) plus
`playwright install chromium`.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import urldefrag

from interview_reader import DataFormatError
from logger import get_logger


logger = get_logger()

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Tried in order until one yields interview links
LINK_SELECTORS = [
    'a[href*="/interviews/"]',
    'a[href*="interview"]',
    '.interview-link',
    '.interview a',
    '[data-interview]',
]

# Preferred containers for the article body; falls back to <body>
CONTENT_SELECTORS = ["article", "main", '[role="main"]', "body"]


def _collect_links(page, link_filter: str) -> List[str]:
    for selector in LINK_SELECTORS:
        hrefs = page.eval_on_selector_all(
            selector, "elements => elements.map(el => el.href).filter(Boolean)"
        )
        urls = []
        for href in hrefs:
            url = urldefrag(href)[0]
            if link_filter in url and url not in urls:
                urls.append(url)
        if urls:
            logger.info(f"Found {len(urls)} interview links using selector {selector}")
            return urls
    return []


def _page_text(page) -> str:
    for selector in CONTENT_SELECTORS:
        locator = page.locator(selector).first
        if locator.count() > 0:
            text = locator.inner_text()
            if text and text.strip():
                return text
    return ""


def scrape_interviews(
    index_url: str,
    limit: Optional[int] = None,
    link_filter: str = "interview",
    headless: bool = True,
    timeout_ms: int = 30000
) -> List[Dict[str, str]]:
    """
    Scrape interview pages linked from an index page.

    Args:
        index_url: Page listing the interviews
        limit: Maximum number of interview pages to visit
        link_filter: Substring a link must contain to count as an interview
        headless: Run the browser without a window
        timeout_ms: Navigation timeout per page

    Returns:
        List of {"url": ..., "text": ...} entries, one per page with text
    """
    from playwright.sync_api import Error as PlaywrightError
    from playwright.sync_api import sync_playwright

    entries = []
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=headless)
        try:
            context = browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1366, "height": 768},
            )
            page = context.new_page()
            page.set_default_timeout(timeout_ms)

            logger.info(f"Navigating to index page {index_url}")
            page.goto(index_url, wait_until="networkidle")

            urls = [u for u in _collect_links(page, link_filter) if u != index_url]
            if limit is not None:
                urls = urls[:limit]

            for url in urls:
                try:
                    page.goto(url, wait_until="domcontentloaded")
                    text = _page_text(page)
                except PlaywrightError as e:
                    logger.warning(f"Failed to scrape {url}: {e}")
                    continue

                if text.strip():
                    entries.append({"url": url, "text": text})
                    logger.info(f"Scraped {url} ({len(text)} chars)")
        finally:
            browser.close()

    logger.info(f"Scraped {len(entries)} interviews from {index_url}")
    return entries


def merge_interviews(file_path: Union[str, Path], entries: List[Dict[str, str]]) -> int:
    """
    Add new entries to an interview file, keyed by URL.

    Existing entries are kept as-is; entries whose URL is already present
    are ignored. The file is created if it does not exist.

    Returns:
        Number of entries added
    """
    path = Path(file_path)
    existing = []
    if path.exists():
        existing = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(existing, list):
            raise DataFormatError(f"{path} does not contain a JSON array")

    known = {item.get("url") for item in existing if isinstance(item, dict)}
    added = 0
    for entry in entries:
        if entry.get("url") and entry["url"] not in known:
            existing.append({"url": entry["url"], "text": entry.get("text", "")})
            known.add(entry["url"])
            added += 1

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(existing, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Added {added} new interviews to {path} ({len(existing)} total)")
    return added
