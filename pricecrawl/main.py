"""Command-line interface entry point for the repair price crawler."""

from __future__ import annotations

import argparse
import asyncio
from typing import Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv

from pricecrawl.config import CrawlerConfig, load_config
from pricecrawl.errors import ConfigError
from pricecrawl.importer import import_catalog_csv
from pricecrawl.logging_config import get_logger
from pricecrawl.orchestrator import CrawlOrchestrator
from pricecrawl.sample_data import populate_sample_data
from pricecrawl.site_check import check_site
from pricecrawl.storage import repo
from pricecrawl.storage.db import get_engine, init_db, make_session


LOGGER = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yml"


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the crawler."""

    parser = argparse.ArgumentParser(
        description="Crawl repair prices into the price history database."
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"YAML configuration file (default: {DEFAULT_CONFIG_PATH}).",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single crawl pass and exit (default).",
    )
    mode.add_argument(
        "--schedule",
        action="store_true",
        help="Repeat the crawl every schedule.days days until interrupted.",
    )
    mode.add_argument(
        "--import-csv",
        metavar="PATH",
        help="Import a parts catalog CSV and exit.",
    )
    mode.add_argument(
        "--generate-sample-data",
        action="store_true",
        help="Populate the database with sample prices and exit.",
    )
    mode.add_argument(
        "--export-csv",
        metavar="PATH",
        help="Write the latest price per repair action to PATH and exit.",
    )
    mode.add_argument(
        "--check-site",
        action="store_true",
        help="Inspect robots.txt and policy pages of the target site and exit.",
    )
    parser.add_argument(
        "--max-manufacturers",
        type=int,
        default=None,
        help="Only crawl the first N manufacturers (0 = all).",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.max_manufacturers is not None and args.max_manufacturers < 0:
        parser.error("--max-manufacturers must be >= 0")
    return args


async def run_crawl(config: CrawlerConfig, session_factory) -> None:
    orchestrator = CrawlOrchestrator(config, session_factory)
    await orchestrator.run()


async def _run_scheduled(config: CrawlerConfig, session_factory) -> None:
    scheduler = AsyncIOScheduler()

    async def scheduled_cycle() -> None:
        try:
            await run_crawl(config, session_factory)
        except Exception:
            LOGGER.exception("Scheduled crawl failed")

    try:
        await run_crawl(config, session_factory)
    except Exception:
        LOGGER.exception("Initial crawl failed")

    scheduler.add_job(scheduled_cycle, "interval", days=config.schedule_days)
    scheduler.start()
    LOGGER.info("Scheduler started with interval=%s days", config.schedule_days)

    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)


def _run_maintenance(args: argparse.Namespace, session_factory) -> None:
    with session_factory() as session:
        if args.import_csv:
            import_catalog_csv(args.import_csv, session)
        elif args.generate_sample_data:
            populate_sample_data(session)
        elif args.export_csv:
            rows = repo.latest_prices(session)
            repo.write_csv(rows, args.export_csv)
            LOGGER.info("Exported %d prices -> %s", len(rows), args.export_csv)


def run(argv: Iterable[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""

    load_dotenv()
    args = parse_args(argv)

    try:
        config = load_config(args.config, max_manufacturers=args.max_manufacturers)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 1

    if args.check_site:
        try:
            report = check_site(config.base_url, user_agent=config.user_agent)
        except Exception:
            LOGGER.exception("Site check failed")
            return 1
        print(f"Crawl recommendation: {report.verdict.value.upper()}")
        return 0

    engine = get_engine(config.database_url)
    try:
        init_db(engine)
        session_factory = make_session(engine)

        if args.import_csv or args.generate_sample_data or args.export_csv:
            _run_maintenance(args, session_factory)
        elif args.schedule:
            asyncio.run(_run_scheduled(config, session_factory))
        else:
            asyncio.run(run_crawl(config, session_factory))
            LOGGER.info("Crawler execution completed")
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")
    except Exception:
        LOGGER.exception("Fatal error in crawler execution")
        return 1
    finally:
        engine.dispose()
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
