"""
Seed the local database from Open Trivia DB.

Usage:
    python seed.py                       # every category
    python seed.py "Science: Computers"  # only the named categories
    python seed.py --wipe                # delete all questions/answers first
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from core import config, db
from seeding.errors import TokenAcquisitionError
from seeding.service import SeedReport, run_seed

logger = logging.getLogger("seed")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync trivia questions from Open Trivia DB.")
    parser.add_argument("categories", nargs="*", help="Only process these category names.")
    parser.add_argument("--wipe", action="store_true", help="Delete all questions and answers before seeding.")
    parser.add_argument("--skip-trim", action="store_true", help="Skip the whitespace maintenance pass.")
    return parser.parse_args(argv)


def _log_report(report: SeedReport) -> None:
    for sync in report.sync:
        logger.info("sync kind=%s added=%d deleted=%d", sync.kind, len(sync.added), len(sync.deleted))
    totals = report.ingestion.totals
    logger.info(
        "seed_complete categories=%d skipped_categories=%d failed_categories=%d processed=%d stored=%d "
        "skipped=%d diverged=%d failed=%d token_resets=%d",
        len(report.ingestion.categories),
        len(report.ingestion.skipped_categories),
        len(report.ingestion.failed_categories),
        totals.processed,
        totals.stored,
        totals.skipped,
        totals.diverged,
        totals.failed,
        report.token_resets,
    )
    for trim in report.trims:
        logger.info("trim kind=%s trimmed=%d deleted=%d", trim.kind, trim.trimmed, trim.deleted)


async def main(args: argparse.Namespace) -> int:
    await db.init_pool()
    try:
        report = await run_seed(
            only_categories=args.categories,
            wipe=args.wipe,
            trim=not args.skip_trim,
        )
    except TokenAcquisitionError:
        logger.critical("seed_aborted reason=no_session_token", exc_info=True)
        return 1
    finally:
        await db.close_pool()

    _log_report(report)
    return 0


def cli() -> None:
    config.configure_logging()
    sys.exit(asyncio.run(main(parse_args())))


if __name__ == "__main__":
    cli()
