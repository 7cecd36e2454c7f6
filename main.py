"""CLI entrypoint for the MonMaster formations snapshot."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, replace
from functools import partial
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from archive import archive_workbooks, clean_archive_dir
from enricher import enrich_formations
from errors import MonMasterError
from etablissement_cache import EtablissementCache
from monmaster_client import (
    DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RETRY_DELAY_SECONDS,
    MONMASTER_API_BASE_URL,
    fetch_etablissement,
    fetch_formations,
)
from xlsx_sink import workbook_filename, write_formations_workbook

DEFAULT_DISCIPLINES = (
    "psychologie,informatique,physique,mathématiques,mécanique des fluides,physique marine"
)


@dataclass(frozen=True, slots=True)
class Settings:
    """Run configuration, resolved once from the environment."""

    base_url: str = MONMASTER_API_BASE_URL
    page_size: int = DEFAULT_PAGE_SIZE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    attempt_timeout_seconds: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS
    max_workers: int | None = None
    output_dir: Path = Path(".")
    archive_dir: Path = Path("old_excel_files")
    disciplines: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> Settings:
        max_workers = os.getenv("MONMASTER_MAX_WORKERS")
        disciplines = os.getenv("MONMASTER_DISCIPLINES", DEFAULT_DISCIPLINES)
        return cls(
            base_url=os.getenv("MONMASTER_API_BASE_URL", MONMASTER_API_BASE_URL).rstrip("/"),
            page_size=int(os.getenv("MONMASTER_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))),
            max_attempts=int(os.getenv("MONMASTER_RETRY_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))),
            retry_delay_seconds=float(
                os.getenv("MONMASTER_RETRY_DELAY_SECONDS", str(DEFAULT_RETRY_DELAY_SECONDS))
            ),
            attempt_timeout_seconds=float(
                os.getenv("MONMASTER_ATTEMPT_TIMEOUT_SECONDS", str(DEFAULT_ATTEMPT_TIMEOUT_SECONDS))
            ),
            max_workers=int(max_workers) if max_workers else None,
            output_dir=Path(os.getenv("MONMASTER_OUTPUT_DIR", ".")),
            archive_dir=Path(os.getenv("MONMASTER_ARCHIVE_DIR", "old_excel_files")),
            disciplines=tuple(d.strip() for d in disciplines.split(",") if d.strip()),
        )


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """What one query produced. ``status`` is "written", "dry_run" or "no_records"."""

    query: str
    status: str
    path: Path | None = None
    total: int = 0
    incomplete: int = 0
    missing_detail: int = 0


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        description="Snapshot MonMaster formations for a discipline into an Excel workbook"
    )
    parser.add_argument("query", nargs="*", help="Search terms, joined with spaces (e.g. mécanique des fluides)")
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Run every discipline listed in MONMASTER_DISCIPLINES instead of a single query",
    )
    parser.add_argument(
        "--rotate",
        action="store_true",
        help="Empty the archive directory and move existing workbooks into it before running",
    )
    parser.add_argument("--page-size", type=int, default=None, help="Number of formations requested (page 0 only)")
    parser.add_argument("--output-dir", type=Path, default=None, help="Directory receiving the workbooks")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and enrich, but do not write any workbook",
    )
    args = parser.parse_args(argv)
    if not args.batch and not " ".join(args.query).strip():
        parser.error("a search query is required unless --batch is given")
    return args


def run(query: str, settings: Settings, dry_run: bool = False) -> RunOutcome:
    """Fetch, enrich and export the formations of one query.

    Primary fetch failures propagate and no workbook is written.
    """
    formations = fetch_formations(query, settings.page_size, base_url=settings.base_url)
    if not formations:
        logging.warning("No formation found for query=%r", query)
        return RunOutcome(query=query, status="no_records")

    resolver = partial(
        fetch_etablissement,
        max_attempts=settings.max_attempts,
        delay_seconds=settings.retry_delay_seconds,
        timeout_seconds=settings.attempt_timeout_seconds,
        base_url=settings.base_url,
    )
    cache = EtablissementCache(resolver)
    records = enrich_formations(formations, cache, max_workers=settings.max_workers)

    incomplete = sum(1 for r in records if not r.complete)
    missing_detail = sum(1 for r in records if not r.has_detail_link)
    if missing_detail:
        logging.warning(
            "Query %r completed degraded: %s/%s rows without a detail link",
            query,
            missing_detail,
            len(records),
        )

    if dry_run:
        logging.info("[dry-run] Would write %s rows for query=%r", len(records), query)
        return RunOutcome(
            query=query,
            status="dry_run",
            total=len(records),
            incomplete=incomplete,
            missing_detail=missing_detail,
        )

    path = write_formations_workbook(records, settings.output_dir / workbook_filename(query))
    return RunOutcome(
        query=query,
        status="written",
        path=path,
        total=len(records),
        incomplete=incomplete,
        missing_detail=missing_detail,
    )


def run_batch(queries: Sequence[str], settings: Settings, dry_run: bool = False) -> tuple[list[RunOutcome], int]:
    """Run each query in turn; a failing query is logged and the batch goes on.

    Returns the outcomes of the queries that ran and the number that failed.
    """
    outcomes: list[RunOutcome] = []
    failed = 0
    for query in queries:
        logging.info("Starting query=%r", query)
        try:
            outcomes.append(run(query, settings, dry_run=dry_run))
        except MonMasterError as exc:
            failed += 1
            logging.error("Run aborted for query=%r: %s", query, exc)

    logging.info("Batch complete. ran=%s failed=%s", len(outcomes), failed)
    return outcomes, failed


def main(argv: Sequence[str] | None = None) -> int:
    """Initialize config and execute the snapshot."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    settings = Settings.from_env()
    overrides = {}
    if args.page_size is not None:
        overrides["page_size"] = args.page_size
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if overrides:
        settings = replace(settings, **overrides)

    if args.rotate:
        clean_archive_dir(settings.archive_dir)
        archive_workbooks(settings.output_dir, settings.archive_dir)

    queries = list(settings.disciplines) if args.batch else [" ".join(args.query).strip()]
    _, failed = run_batch(queries, settings, dry_run=args.dry_run)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
