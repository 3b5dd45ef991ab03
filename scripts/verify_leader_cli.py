"""CLI helper to run the verification and email passes for a single leader."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Sequence

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from leadership_verifier import build_services, load_settings  # noqa: E402  (import after path fix)
from leadership_verifier.enrichers import (  # noqa: E402
    EmailOutcome,
    VerificationOutcome,
    enrich_email_record,
    verify_record,
)
from leadership_verifier.ingestion import build_input_record  # noqa: E402
from leadership_verifier.models import InputRecord  # noqa: E402

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify one leader without creating a job.")
    parser.add_argument("employee_name", help="Leader name as listed in the filing")
    parser.add_argument("org_name", help="Organization name")
    parser.add_argument("--website", default="", help="Organization website")
    parser.add_argument("--title", default="", help="Listed title")
    parser.add_argument("--ein", default="000000000", help="Filer EIN")
    parser.add_argument("--config", help="Path to a YAML or JSON settings file")
    parser.add_argument("--mode", choices=["offline", "online"], help="Override the configured enrichment mode")
    parser.add_argument(
        "--output-json",
        type=Path,
        help="Optional path to save the raw JSON result",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Console log level",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level))


def run_checks(args: argparse.Namespace) -> None:
    configure_logging(args.log_level)

    settings = load_settings(args.config)
    if args.mode:
        settings = replace(settings, enrichment_mode=args.mode)

    record = build_input_record(
        "adhoc",
        1,
        {
            "filer_ein": args.ein,
            "org_name": args.org_name,
            "website": args.website,
            "employee_name": args.employee_name,
            "employee_title": args.title,
            "comp_org": "",
        },
    )

    with build_services(settings) as services:
        verification = verify_record(record, settings=settings, search=services.search)
        email = enrich_email_record(
            record, settings=settings, finder=services.finder, verifier=services.verifier
        )

    pretty_print_result(record, verification, email)

    if args.output_json:
        payload = {
            "record": asdict(record),
            "verification": asdict(verification),
            "email": asdict(email),
        }
        args.output_json.write_text(json.dumps(payload, indent=2, default=str))
        LOGGER.info("Wrote result JSON to %s", args.output_json)


def pretty_print_result(record: InputRecord, verification: VerificationOutcome, email: EmailOutcome) -> None:
    print("Leader:")
    print(f"  {record.display_name()} @ {record.org_name}")
    if record.org_domain:
        print(f"  Domain: {record.org_domain}")
    if record.input_issues:
        print(f"  Input issues: {', '.join(record.input_issues)}")

    print(f"Status: {verification.current_status.value}")
    if verification.unknown_reason:
        print(f"  Reason: {verification.unknown_reason}")
    if verification.current_title:
        print(f"  Title: {verification.current_title}")
    if verification.notes:
        print(f"  Notes: {verification.notes}")

    if verification.data_sources:
        print("Sources:")
        for source in verification.data_sources:
            print(f"  - [{source.type}] {source.url or source.snippet or ''}")

    print(f"Email: {email.verified_email or '-'} ({email.email_type.value})")
    print(f"Cost: ${verification.cost_usd + email.cost_usd:.4f}")


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv or sys.argv[1:])
    try:
        run_checks(args)
    except Exception as exc:  # pragma: no cover - CLI convenience
        LOGGER.exception("Verification failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
