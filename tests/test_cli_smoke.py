"""Smoke tests for the CLI entry point."""
from __future__ import annotations

import pandas as pd
import pytest

from leadership_verifier import __main__
from leadership_verifier.cli import main
from leadership_verifier.models import JobStatus
from leadership_verifier.store import SqliteRecordStore


@pytest.fixture()
def input_path(tmp_path):
    path = tmp_path / "input.csv"
    path.write_text(
        "filer_ein,org_name,website,employee_name,employee_title,comp_org\n"
        "123456789,Acme Foundation,https://www.acme.org,Jane Doe,CEO,Acme Foundation\n",
        encoding="utf-8",
    )
    return path


def test_cli_run_offline_writes_export(tmp_path, input_path, capsys) -> None:
    db_path = tmp_path / "jobs.sqlite3"
    output_path = tmp_path / "results.csv"

    exit_code = main(["--db", str(db_path), "--mode", "offline", "run", str(input_path), str(output_path)])

    assert exit_code == 0
    job_id = capsys.readouterr().out.strip()
    assert SqliteRecordStore(db_path).get_job(job_id).status == JobStatus.COMPLETED

    frame = pd.read_csv(output_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    assert frame.loc[0, "current_status"] == "Unknown"
    assert frame.loc[0, "verified_email"] == "jane.doe@acme.org"
    assert frame.loc[0, "email_type"] == "Work (unverified)"


def test_cli_ingest_then_export(tmp_path, input_path, capsys) -> None:
    db_path = tmp_path / "jobs.sqlite3"

    assert main(["--db", str(db_path), "ingest", str(input_path)]) == 0
    job_id = capsys.readouterr().out.strip()

    output_path = tmp_path / "export.xlsx"
    assert main(["--db", str(db_path), "export", job_id, str(output_path)]) == 0
    assert output_path.exists()


def test_cli_unknown_job_returns_error(tmp_path) -> None:
    exit_code = main(["--db", str(tmp_path / "jobs.sqlite3"), "--mode", "offline", "verify", "missing"])

    assert exit_code == 1


def test_cli_online_without_credentials_returns_error(tmp_path, input_path, monkeypatch) -> None:
    for name in ("GOOGLE_CSE_API_KEY", "GOOGLE_CSE_CX", "ENRICHMENT_MODE"):
        monkeypatch.delenv(name, raising=False)

    exit_code = main(
        [
            "--db",
            str(tmp_path / "jobs.sqlite3"),
            "--mode",
            "online",
            "run",
            str(input_path),
            str(tmp_path / "out.csv"),
        ]
    )

    assert exit_code == 1


def test_module_entry_point_without_arguments_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = __main__.main([])

    captured = capsys.readouterr()
    assert "python -m leadership_verifier" in captured.out
    assert exit_code == 2
