"""Command line interface for ingesting, verifying and exporting leadership jobs."""
from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Tuple

from .config import OFFLINE, ONLINE, ConfigurationError, Settings, load_settings
from .factory import ServiceRegistry, build_services
from .ingestion import IngestionError, export_job_results, ingest_leadership_file
from .orchestrator import JobRunner, PassSummary
from .store import JobNotFoundError, SqliteRecordStore

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_PATH = "leadership_verifier.sqlite3"


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Verify whether listed organization leaders still hold their roles",
    )
    parser.add_argument("--config", help="Path to a YAML or JSON settings file")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database holding jobs and results")
    parser.add_argument(
        "--mode",
        choices=[OFFLINE, ONLINE],
        default=None,
        help="Override the configured enrichment mode",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (e.g. DEBUG, INFO, WARNING)")

    subparsers = parser.add_subparsers(dest="command")

    ingest = subparsers.add_parser("ingest", help="Load a CSV/TSV/XLSX upload into a new job")
    ingest.add_argument("input", help="Path to the leadership spreadsheet")

    for name, help_text in (
        ("verify", "Run the employment verification pass"),
        ("enrich-emails", "Run the email discovery pass"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("job_id")

    people = subparsers.add_parser("enrich-people", help="Run the people-data enrichment pass")
    people.add_argument("job_id")
    people.add_argument(
        "--record-id",
        action="append",
        dest="record_ids",
        default=None,
        help="Restrict the pass to this record (repeatable)",
    )

    export = subparsers.add_parser("export", help="Write a job's results to CSV or XLSX")
    export.add_argument("job_id")
    export.add_argument("output", help="Destination file (.csv, .tsv or .xlsx)")

    run = subparsers.add_parser("run", help="Ingest, verify, find emails and export in one go")
    run.add_argument("input", help="Path to the leadership spreadsheet")
    run.add_argument("output", help="Destination file (.csv, .tsv or .xlsx)")
    run.add_argument("--people", action="store_true", help="Also run the people-data pass")

    return parser


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config)
    if args.mode:
        settings = replace(settings, enrichment_mode=args.mode)
    return settings


@contextmanager
def _runner(args: argparse.Namespace) -> Iterator[Tuple[SqliteRecordStore, JobRunner]]:
    settings = _settings(args)
    store = SqliteRecordStore(args.db)
    services: ServiceRegistry = build_services(settings)
    try:
        yield store, JobRunner(store, settings, services)
    finally:
        services.close()


def _report(name: str, summary: PassSummary) -> None:
    LOGGER.info(
        "%s: %d/%d records, %d errors, %d enriched, total cost $%.4f",
        name,
        summary.processed,
        summary.record_count,
        summary.errors,
        summary.enriched_count,
        summary.total_cost_usd,
    )


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "ingest":
        store = SqliteRecordStore(args.db)
        summary = ingest_leadership_file(store, args.input)
        LOGGER.info("Ingested %d rows (%d invalid)", summary.total_rows, summary.error_count)
        print(summary.job.id)
        return 0

    if args.command == "export":
        store = SqliteRecordStore(args.db)
        path = export_job_results(store, args.job_id, args.output)
        LOGGER.info("Results written to %s", Path(path).resolve())
        return 0

    with _runner(args) as (store, runner):
        if args.command == "verify":
            _report("verify", runner.run_verify(args.job_id))
        elif args.command == "enrich-emails":
            _report("enrich-emails", runner.run_email_enrichment(args.job_id))
        elif args.command == "enrich-people":
            _report("enrich-people", runner.run_people_enrichment(args.job_id, args.record_ids))
        elif args.command == "run":
            summary = ingest_leadership_file(store, args.input)
            job_id = summary.job.id
            LOGGER.info("Ingested %d rows into job %s", summary.total_rows, job_id)
            _report("verify", runner.run_verify(job_id))
            _report("enrich-emails", runner.run_email_enrichment(job_id))
            if args.people:
                _report("enrich-people", runner.run_people_enrichment(job_id))
            path = export_job_results(store, job_id, args.output)
            LOGGER.info("Results written to %s", Path(path).resolve())
            print(job_id)
    return 0


def main(argv: list[str] | None = None, *, prog: str | None = None) -> int:
    parser = build_parser(prog)
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    try:
        return _dispatch(args)
    except (ConfigurationError, IngestionError, JobNotFoundError) as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
