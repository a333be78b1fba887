#!/usr/bin/env python3
"""
Quote Bot entry point.

Usage:
    python main.py [run] [--once]
    python main.py test-email --to ADDRESS
    python main.py stats
    python main.py scrape --index-url URL [--output PATH] [--limit N]

Commands:
    run          Send a quote on the CRON_SCHEDULE (default), or once with --once
    test-email   Send the sample quote email to one address
    stats        Print a summary of the interview file as JSON
    scrape       Collect interviews with a headless browser into the interview file

Configuration is read from the environment and a .env file; see config.py.
Exit status is 0 on success or graceful shutdown and 1 on any failure.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from dotenv import load_dotenv

from config import AppConfig, ConfigurationError, load_config
from interview_reader import InterviewReader
from logger import get_logger, setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quote-bot",
        description="Email a quote picked from interview transcripts by an AI model."
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run on schedule (default command)")
    run_parser.add_argument("--once", action="store_true", help="Send one quote and exit")

    test_parser = subparsers.add_parser("test-email", help="Send the sample quote email")
    test_parser.add_argument("--to", required=True, help="Recipient address")

    subparsers.add_parser("stats", help="Summarize the interview file")

    scrape_parser = subparsers.add_parser("scrape", help="Scrape interviews into the interview file")
    scrape_parser.add_argument("--index-url", required=True, help="Page that links to the interviews")
    scrape_parser.add_argument("--output", help="Interview file to merge into (default: INTERVIEWS_FILE_PATH)")
    scrape_parser.add_argument("--limit", type=int, help="Maximum number of pages to scrape")
    scrape_parser.add_argument("--headed", action="store_true", help="Show the browser window")

    return parser


async def _run(config: AppConfig, once: bool) -> int:
    from quote_bot import QuoteBot

    bot = QuoteBot(config)
    logger = get_logger()
    logger.info(
        "Quote bot initialized",
        extra={"metadata": bot.quote_extractor.provider_info()}
    )
    if config.is_development:
        logger.debug("Configuration", extra={"metadata": config.debug_info()})

    if once or config.schedule.run_once:
        return await bot.run_once()
    return await bot.run_forever()


async def _test_email(config: AppConfig, recipient: str) -> int:
    from email_sender import EmailSender

    sender = EmailSender(config.email)
    if not await sender.test_connection():
        print("❌ SMTP connection test failed (see logs)")
        return 1

    receipt = await sender.send_test_email(recipient)
    print(f"✅ Test email sent to {recipient}")
    print(f"   Message ID: {receipt.message_id}")
    return 0


def _stats(config: AppConfig) -> int:
    reader = InterviewReader(config.data.interviews_file_path)
    reader.load()
    stats = reader.stats()
    print(json.dumps({
        "total": stats.total,
        "average_length": stats.average_length,
        "sources": stats.sources,
        "last_loaded": stats.last_loaded.isoformat() if stats.last_loaded else None,
    }, indent=2))
    return 0


def _scrape(config: AppConfig, args: argparse.Namespace) -> int:
    from interview_scraper import merge_interviews, scrape_interviews

    entries = scrape_interviews(args.index_url, limit=args.limit, headless=not args.headed)
    output = args.output or config.data.interviews_file_path
    added = merge_interviews(output, entries)
    print(f"✓ Scraped {len(entries)} pages, added {added} new interviews to {output}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    logger = get_logger()
    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error("Failed to start quote bot: invalid configuration")
        print("Configuration errors:", file=sys.stderr)
        for issue in e.issues:
            print(f"  - {issue}", file=sys.stderr)
        return 1

    setup_logger(log_dir=str(config.log_dir), level=config.log_level)

    try:
        if command == "run":
            return asyncio.run(_run(config, getattr(args, "once", False)))
        if command == "test-email":
            return asyncio.run(_test_email(config, args.to))
        if command == "stats":
            return _stats(config)
        if command == "scrape":
            return _scrape(config, args)
    except KeyboardInterrupt:
        get_logger().info("Interrupted, shutting down")
        return 0
    except Exception as e:
        get_logger().error(f"Failed to run {command}: {e}", exc_info=True)
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
