"""Configuration helpers for the leadership verification pipeline."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .http import RetryPolicy

LOGGER = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}

OFFLINE = "offline"
ONLINE = "online"


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        import yaml

        data = yaml.safe_load(text)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping")
    return data


@dataclass(frozen=True)
class ProviderSettings:
    """Credentials, pricing and throttling for one external provider."""

    api_key: str = ""
    cost_usd: float = 0.0
    concurrency: int = 1
    min_time_ms: int = 0


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings shared by clients, enrichers and the job runner."""

    enrichment_mode: str = OFFLINE
    worker_concurrency: int = 2
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    google_cse: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(cost_usd=0.005, concurrency=1, min_time_ms=600)
    )
    google_cse_cx: str = ""
    max_queries_per_record: int = 1
    email_finder_provider: str = "none"
    hunter: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(cost_usd=0.02, concurrency=1, min_time_ms=300)
    )
    email_verifier_provider: str = "none"
    zerobounce: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(cost_usd=0.004, concurrency=1, min_time_ms=150)
    )
    pdl: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(cost_usd=0.05, concurrency=1, min_time_ms=200)
    )
    cache_path: Optional[str] = None

    @property
    def online(self) -> bool:
        return self.enrichment_mode == ONLINE

    @property
    def finder_enabled(self) -> bool:
        return self.online and self.email_finder_provider == "hunter"

    @property
    def verifier_enabled(self) -> bool:
        return self.online and self.email_verifier_provider == "zerobounce"

    def require_online_search(self) -> None:
        """Fail fast when online verification is requested without search credentials."""

        if not self.online:
            return
        if not self.google_cse.api_key or not self.google_cse_cx:
            raise ConfigurationError(
                "enrichment_mode=online requires GOOGLE_CSE_API_KEY and GOOGLE_CSE_CX"
            )


_ENV_FALLBACKS = {
    ("google_cse", "api_key"): "GOOGLE_CSE_API_KEY",
    ("hunter", "api_key"): "HUNTER_API_KEY",
    ("zerobounce", "api_key"): "ZEROBOUNCE_API_KEY",
    ("pdl", "api_key"): "PDL_API_KEY",
}


def _int(value: Any, default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Setting '{name}' must be an integer, got {value!r}") from exc


def _float(value: Any, default: float, name: str) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Setting '{name}' must be a number, got {value!r}") from exc


def _choice(value: Any, default: str, allowed: set[str], name: str) -> str:
    if value is None or value == "":
        return default
    text = str(value).strip().lower()
    if text not in allowed:
        raise ConfigurationError(f"Setting '{name}' must be one of {sorted(allowed)}, got {value!r}")
    return text


def _provider(
    name: str,
    section: Mapping[str, Any],
    defaults: ProviderSettings,
    environ: Mapping[str, str],
) -> ProviderSettings:
    api_key = str(section.get("api_key") or "").strip()
    if not api_key:
        env_name = _ENV_FALLBACKS.get((name, "api_key"))
        api_key = (environ.get(env_name, "") if env_name else "").strip()
    return ProviderSettings(
        api_key=api_key,
        cost_usd=_float(section.get("cost_usd"), defaults.cost_usd, f"{name}.cost_usd"),
        concurrency=max(1, _int(section.get("concurrency"), defaults.concurrency, f"{name}.concurrency")),
        min_time_ms=max(0, _int(section.get("min_time_ms"), defaults.min_time_ms, f"{name}.min_time_ms")),
    )


def settings_from_mapping(
    config: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """Build :class:`Settings` from a configuration mapping.

    Empty credentials fall back to the matching environment variable so secrets do
    not have to live in the configuration file.
    """

    environ = os.environ if environ is None else environ
    base = Settings()

    http_cfg = config.get("http") or {}
    retry = RetryPolicy(
        retries=max(0, _int(http_cfg.get("retries"), base.retry.retries, "http.retries")),
        base_delay_ms=_int(http_cfg.get("base_delay_ms"), base.retry.base_delay_ms, "http.base_delay_ms"),
        max_delay_ms=_int(http_cfg.get("max_delay_ms"), base.retry.max_delay_ms, "http.max_delay_ms"),
    )

    google_cfg = config.get("google_cse") or {}
    cx = str(google_cfg.get("cx") or "").strip() or environ.get("GOOGLE_CSE_CX", "").strip()

    cache_cfg = config.get("cache") or {}
    mode = config.get("enrichment_mode") or environ.get("ENRICHMENT_MODE")

    settings = Settings(
        enrichment_mode=_choice(mode, base.enrichment_mode, {OFFLINE, ONLINE}, "enrichment_mode"),
        worker_concurrency=max(
            1, _int(config.get("worker_concurrency"), base.worker_concurrency, "worker_concurrency")
        ),
        retry=retry,
        google_cse=_provider("google_cse", google_cfg, base.google_cse, environ),
        google_cse_cx=cx,
        max_queries_per_record=max(
            1,
            _int(
                google_cfg.get("max_queries_per_record"),
                base.max_queries_per_record,
                "google_cse.max_queries_per_record",
            ),
        ),
        email_finder_provider=_choice(
            config.get("email_finder_provider"), "none", {"none", "hunter"}, "email_finder_provider"
        ),
        hunter=_provider("hunter", config.get("hunter") or {}, base.hunter, environ),
        email_verifier_provider=_choice(
            config.get("email_verifier_provider"), "none", {"none", "zerobounce"}, "email_verifier_provider"
        ),
        zerobounce=_provider("zerobounce", config.get("zerobounce") or {}, base.zerobounce, environ),
        pdl=_provider("pdl", config.get("pdl") or {}, base.pdl, environ),
        cache_path=cache_cfg.get("path") or None,
    )
    LOGGER.debug("Resolved settings: mode=%s workers=%s", settings.enrichment_mode, settings.worker_concurrency)
    return settings


def load_settings(
    path: str | Path | None = None, environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """Load settings from an optional JSON/YAML file plus environment fallbacks."""

    config = load_configuration(path) if path else {}
    return settings_from_mapping(config, environ)
