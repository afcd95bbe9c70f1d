"""Configuration settings for the SERP harvester."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import yaml
from dotenv import load_dotenv

from .models import Proxy

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Unified settings with YAML override support."""

    # API Keys (from environment)
    anticaptcha_key: str = field(default_factory=lambda: os.environ.get("ANTICAPTCHA_KEY", ""))

    # Which search engine profile to harvest
    engine: str = "yandex"

    # Crawl shape
    page_limit: int = 1
    also_searched_for: bool = False
    search_depth: int = 0

    # Worker pool
    concurrency: int = 1

    # Browser
    headless: bool = True

    # Captcha service polling
    captcha_poll_interval: float = 5.0
    captcha_max_wait: float = 120.0


def load_config(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML file with environment overrides.

    Priority: environment > config file > defaults

    Args:
        path: Path to YAML config file (optional)

    Returns:
        Settings instance with merged configuration
    """
    settings = Settings()

    if path:
        config_path = Path(path)
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

            for key, value in data.items():
                if hasattr(settings, key):
                    setattr(settings, key, value)
                else:
                    logger.warning("Ignoring unknown config key: %s", key)

    # Environment overrides (always win)
    if os.environ.get("ANTICAPTCHA_KEY"):
        settings.anticaptcha_key = os.environ["ANTICAPTCHA_KEY"]

    return settings


@dataclass
class HarvestConfig:
    """Configuration for the harvester's browser behaviour."""

    # Browser settings
    headless: bool = True
    browser_timeout: int = 30000  # ms

    # Navigation budgets (ms)
    home_timeout: int = 20000
    pagination_timeout: int = 60000
    suggestion_timeout: int = 15000
    selector_timeout: int = 30000
    wait_until: str = "networkidle"

    # Challenge solving
    challenge_max_attempts: int = 10
    challenge_max_duration: float = 300.0  # seconds
    click_delay_min: float = 0.1  # seconds between captcha clicks
    click_delay_max: float = 0.5
    submit_delay: float = 1.0
    settle_delay: float = 0.5  # after hiding captcha controls

    # Worker pool
    concurrency: int = 1


def parse_proxy_line(line: str) -> Optional[Proxy]:
    """
    Parse one proxy line.

    Accepts ``host:port`` or ``host:port:login:password``. Anything else
    (blank lines, comments, wrong arity) returns None.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    parts = line.split(":")
    if len(parts) == 2:
        server, port = parts
        return Proxy(server=server, port=port)
    if len(parts) == 4:
        server, port, login, password = parts
        return Proxy(server=server, port=port, login=login, password=password)

    logger.debug("Skipping malformed proxy line: %s", line)
    return None


def parse_proxy_list(lines: Iterable[str]) -> list[Proxy]:
    """Parse a proxy list, skipping lines that don't match a known format."""
    proxies = []
    for line in lines:
        proxy = parse_proxy_line(line)
        if proxy:
            proxies.append(proxy)
    return proxies


def load_proxy_file(path: str) -> list[Proxy]:
    """Read and parse a proxy list file."""
    with open(path, encoding="utf-8") as f:
        proxies = parse_proxy_list(f)
    logger.info("Loaded %d proxies from %s", len(proxies), path)
    return proxies
