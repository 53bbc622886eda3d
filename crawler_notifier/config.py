"""Crawler Notifier — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} or
${VAR_NAME:-default} syntax. Uses Python dataclasses for type-safe
configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
# ${NAME} or ${NAME:-fallback}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?}")


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TelegramConfig:
    """Credentials for Telegram notifications.

    Either value may be empty; the notification queue then runs in
    no-op mode.
    """

    api_key: str
    chat_id: str

    @property
    def is_configured(self) -> bool:
        """Whether both the bot token and the destination chat are set."""
        return bool(self.api_key) and bool(self.chat_id)


@dataclass(frozen=True)
class QueueConfig:
    """Delivery policy for the notification queue."""

    rate_limit_delay_seconds: float = 1.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    default_retry_after_seconds: float = 5.0


@dataclass(frozen=True)
class ScraperConfig:
    """HTTP settings shared by all crawlers."""

    timeout_seconds: int = 30
    max_retries: int = 3
    request_delay_seconds: float = 1.0
    search_delay_seconds: float = 3.0
    user_agents: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CrawlerConfig:
    """One crawled site.

    ``urls`` may contain a ``{term}`` placeholder which is expanded once
    per search term; URLs without it are fetched as they are.
    """

    name: str
    urls: list[str]
    link_selectors: list[str]
    search_terms: list[str] = field(default_factory=list)
    href_contains: list[str] = field(default_factory=list)
    href_excludes: list[str] = field(default_factory=list)
    max_results: int = 0
    enabled: bool = True

    @property
    def is_templated(self) -> bool:
        """Whether any of the URLs takes a search term."""
        return any("{term}" in url for url in self.urls)


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    telegram: TelegramConfig
    queue: QueueConfig
    scraper: ScraperConfig
    crawlers: list[CrawlerConfig]
    database_path: str
    log_level: str
    scan_interval_minutes: int

    def get_crawler(self, name: str) -> CrawlerConfig:
        """Look up a crawler by name.

        Raises:
            KeyError: If no crawler with that name is configured.
        """
        for crawler in self.crawlers:
            if crawler.name == name:
                return crawler
        known = ", ".join(c.name for c in self.crawlers)
        raise KeyError(f"Unknown crawler '{name}'. Configured crawlers: {known}")


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all placeholders replaced by their
        environment variable values (or their ``:-`` defaults).

    Raises:
        ValueError: If a referenced environment variable is not set and
            the placeholder has no default.
    """
    if isinstance(value, str):
        def _substitute(match: re.Match[str]) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ValueError(
                f"Environment variable '${{{var_name}}}' is required but not set. "
                f"Add it to your .env file or export it in your shell."
            )

        return ENV_VAR_PATTERN.sub(_substitute, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section."""
    _validate_keys(data, ["api_key", "chat_id"], "telegram")

    return TelegramConfig(
        api_key=str(data["api_key"] or "").strip(),
        chat_id=str(data["chat_id"] or "").strip(),
    )


def _build_queue_config(data: dict[str, Any]) -> QueueConfig:
    """Build a QueueConfig from the optional 'queue' section.

    Raises:
        ValueError: If a delay is negative or max_retries is below zero.
    """
    config = QueueConfig(
        rate_limit_delay_seconds=float(data.get("rate_limit_delay_seconds", 1.0)),
        max_retries=int(data.get("max_retries", 3)),
        retry_delay_seconds=float(data.get("retry_delay_seconds", 1.0)),
        default_retry_after_seconds=float(data.get("default_retry_after_seconds", 5.0)),
    )
    if config.max_retries < 0:
        raise ValueError(f"queue.max_retries must be >= 0, got {config.max_retries}")
    for name in ("rate_limit_delay_seconds", "retry_delay_seconds", "default_retry_after_seconds"):
        if getattr(config, name) < 0:
            raise ValueError(f"queue.{name} must be >= 0, got {getattr(config, name)}")
    return config


def _build_scraper_config(data: dict[str, Any]) -> ScraperConfig:
    """Build a ScraperConfig from the optional 'scraper' section."""
    return ScraperConfig(
        timeout_seconds=int(data.get("timeout_seconds", 30)),
        max_retries=int(data.get("max_retries", 3)),
        request_delay_seconds=float(data.get("request_delay_seconds", 1.0)),
        search_delay_seconds=float(data.get("search_delay_seconds", 3.0)),
        user_agents=list(data.get("user_agents") or []),
    )


def _build_crawler_config(data: dict[str, Any]) -> CrawlerConfig:
    """Build a CrawlerConfig from one entry of the 'crawlers' list.

    A single ``url`` key is accepted as shorthand for ``urls: [url]``.
    """
    if "url" in data and "urls" not in data:
        data = {**data, "urls": [data["url"]]}
    _validate_keys(data, ["name", "urls", "link_selectors"], "crawlers")

    name = data["name"]
    urls = list(data["urls"])
    if not urls:
        raise ValueError(f"Crawler '{name}' has no urls")

    selectors = data["link_selectors"]
    if isinstance(selectors, str):
        selectors = [selectors]

    crawler = CrawlerConfig(
        name=name,
        urls=urls,
        link_selectors=list(selectors),
        search_terms=list(data.get("search_terms") or []),
        href_contains=list(data.get("href_contains") or []),
        href_excludes=list(data.get("href_excludes") or []),
        max_results=int(data.get("max_results", 0)),
        enabled=bool(data.get("enabled", True)),
    )
    if crawler.is_templated and not crawler.search_terms:
        logger.warning(
            "Crawler '%s' uses {term} URLs but has no default search_terms", name,
        )
    return crawler


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads settings.yaml, resolves environment variables, validates all
    required fields, and returns a typed AppConfig instance.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings_file = settings_path or SETTINGS_PATH
    settings = _resolve_env_vars(_load_yaml(settings_file))

    _validate_keys(settings, ["telegram", "crawlers", "database"], "settings")

    crawlers = [_build_crawler_config(c) for c in settings["crawlers"] or []]
    names = [c.name for c in crawlers]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate crawler names: {', '.join(duplicates)}")

    config = AppConfig(
        telegram=_build_telegram_config(settings["telegram"]),
        queue=_build_queue_config(settings.get("queue") or {}),
        scraper=_build_scraper_config(settings.get("scraper") or {}),
        crawlers=crawlers,
        database_path=settings["database"]["path"],
        log_level=(settings.get("logging") or {}).get("level", "INFO"),
        scan_interval_minutes=int(
            (settings.get("scheduler") or {}).get("scan_interval_minutes", 30)
        ),
    )

    logger.info("Configuration loaded successfully (%d crawlers)", len(crawlers))
    logger.debug("Database path: %s", config.database_path)
    if not config.telegram.is_configured:
        logger.warning("Telegram credentials missing — notifications will be skipped")

    return config
