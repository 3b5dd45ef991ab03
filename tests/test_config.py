import json

import pytest

from leadership_verifier.config import ConfigurationError, Settings, load_configuration, load_settings, settings_from_mapping


def test_defaults_are_offline() -> None:
    settings = settings_from_mapping({}, environ={})

    assert settings == Settings()
    assert not settings.online
    assert settings.google_cse.cost_usd == 0.005
    assert settings.pdl.min_time_ms == 200
    settings.require_online_search()


def test_credentials_fall_back_to_environment() -> None:
    environ = {
        "GOOGLE_CSE_API_KEY": "env-key",
        "GOOGLE_CSE_CX": "env-cx",
        "PDL_API_KEY": "pdl-env",
        "ENRICHMENT_MODE": "online",
    }

    settings = settings_from_mapping({"pdl": {"api_key": "pdl-file"}}, environ=environ)

    assert settings.online
    assert settings.google_cse.api_key == "env-key"
    assert settings.google_cse_cx == "env-cx"
    assert settings.pdl.api_key == "pdl-file"
    settings.require_online_search()


def test_online_without_search_credentials_is_rejected() -> None:
    settings = settings_from_mapping({"enrichment_mode": "online"}, environ={})

    with pytest.raises(ConfigurationError):
        settings.require_online_search()


def test_yaml_file_is_loaded(tmp_path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "enrichment_mode: offline\n"
        "worker_concurrency: 4\n"
        "http:\n  retries: 5\n"
        "google_cse:\n  max_queries_per_record: 3\n  min_time_ms: 1000\n"
        "email_finder_provider: hunter\n"
        "cache:\n  path: cache.sqlite3\n",
        encoding="utf-8",
    )

    settings = load_settings(path, environ={})

    assert settings.worker_concurrency == 4
    assert settings.retry.retries == 5
    assert settings.max_queries_per_record == 3
    assert settings.google_cse.min_time_ms == 1000
    assert settings.email_finder_provider == "hunter"
    assert not settings.finder_enabled
    assert settings.cache_path == "cache.sqlite3"


def test_json_file_is_loaded(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"email_verifier_provider": "zerobounce"}), encoding="utf-8")

    assert load_configuration(path) == {"email_verifier_provider": "zerobounce"}


@pytest.mark.parametrize(
    "config",
    [
        {"enrichment_mode": "sometimes"},
        {"worker_concurrency": "many"},
        {"email_finder_provider": "clearbit"},
        {"pdl": {"cost_usd": "cheap"}},
    ],
)
def test_invalid_values_are_rejected(config) -> None:
    with pytest.raises(ConfigurationError):
        settings_from_mapping(config, environ={})


def test_missing_or_unsupported_files(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_configuration(tmp_path / "absent.yaml")

    other = tmp_path / "settings.ini"
    other.write_text("[x]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_configuration(other)
