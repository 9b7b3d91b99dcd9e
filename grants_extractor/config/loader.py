"""
YAML configuration loader with validation.

Loads extraction settings from YAML files with:
- Environment variable substitution
- Validation of thresholds and extraction mode
- Default values for anything the file leaves out
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
import structlog

logger = structlog.get_logger(__name__)


EXTRACTION_MODES = ("live", "fallback", "auto")


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variables in text.

    Supports formats:
    - ${VAR_NAME} - required, empty string (and a warning) if missing
    - ${VAR_NAME:-default} - optional with default

    Args:
        text: Text with env var placeholders

    Returns:
        Text with substituted values
    """
    def replace(match):
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)
        else:
            value = os.getenv(var_expr)
            if value is None:
                logger.warning("env_var_not_set", var=var_expr)
                return ""
            return value

    return re.sub(r"\$\{([^}]+)\}", replace, text)


@dataclass
class ExtractionSettings:
    """Product-tunable constants and endpoints for the extraction workflows."""

    extraction_mode: str = "auto"

    completion_threshold: int = 60
    readiness_threshold: int = 50

    feed_url: str = "https://www.grants.gov/custom/spoExit.jsp?p=rss/GG_OppModByAgency.xml"
    feed_item_limit: int = 50
    feed_default_horizon_days: int = 30
    stale_after_days: int = 30

    listing_base_url: str = "https://simpler.grants.gov"
    listing_search_url: str = "https://simpler.grants.gov/search"
    listing_default_horizon_days: int = 60
    max_pages: int = 3
    result_limit: int = 50
    page_delay_seconds: float = 1.0

    requests_per_second: float = 2.0
    timeout: float = 30.0

    perplexity_api_key: Optional[str] = None
    perplexity_model: str = "sonar"
    firecrawl_api_key: Optional[str] = None

    def __post_init__(self):
        if self.extraction_mode not in EXTRACTION_MODES:
            raise ValueError(
                f"extraction_mode must be one of {EXTRACTION_MODES}, got {self.extraction_mode!r}"
            )
        for name in ("completion_threshold", "readiness_threshold"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        if self.page_delay_seconds < 0:
            raise ValueError("page_delay_seconds must not be negative")

    def use_live(self, provider_available: bool = True) -> bool:
        """
        Decide between live extraction and the canned fallback.

        Args:
            provider_available: Whether the provider the workflow would call
                                is configured (True for keyless sources)
        """
        if self.extraction_mode == "fallback":
            return False
        if self.extraction_mode == "live":
            return True
        return provider_available


class ConfigLoader:
    """
    Configuration loader for extraction settings.

    Loads YAML config files and maps them onto ExtractionSettings.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Directory containing config files
                       (defaults to package config directory)
        """
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(__file__).parent

    def load_file(self, filename: str) -> dict:
        """
        Load YAML config file.

        Args:
            filename: Config file name (relative to config_dir)

        Returns:
            Parsed config dict
        """
        filepath = self.config_dir / filename

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        logger.info("loading_config", file=str(filepath))

        with open(filepath, "r", encoding="utf-8") as f:
            content = f.read()

        content = substitute_env_vars(content)
        config = yaml.safe_load(content)

        return config or {}

    def load_settings(self, filename: str = "settings.yml") -> ExtractionSettings:
        """
        Load extraction settings from YAML.

        Args:
            filename: Settings file name

        Returns:
            ExtractionSettings

        Raises:
            ValueError: If a value is out of range or the mode is unknown
        """
        config = self.load_file(filename)
        return self._parse_settings(config)

    def _parse_settings(self, data: dict) -> ExtractionSettings:
        """
        Flatten the sectioned YAML into ExtractionSettings.

        Args:
            data: Parsed YAML dict

        Returns:
            ExtractionSettings object
        """
        defaults = ExtractionSettings()
        extraction = data.get("extraction") or {}
        matching = data.get("matching") or {}
        feed = data.get("feed") or {}
        listing = data.get("listing") or {}
        http = data.get("http") or {}
        providers = data.get("providers") or {}

        return ExtractionSettings(
            extraction_mode=str(extraction.get("mode") or defaults.extraction_mode).lower(),
            completion_threshold=int(matching.get("completion_threshold", defaults.completion_threshold)),
            readiness_threshold=int(matching.get("readiness_threshold", defaults.readiness_threshold)),
            feed_url=feed.get("url", defaults.feed_url),
            feed_item_limit=int(feed.get("item_limit", defaults.feed_item_limit)),
            feed_default_horizon_days=int(feed.get("default_horizon_days", defaults.feed_default_horizon_days)),
            stale_after_days=int(feed.get("stale_after_days", defaults.stale_after_days)),
            listing_base_url=listing.get("base_url", defaults.listing_base_url),
            listing_search_url=listing.get("search_url", defaults.listing_search_url),
            listing_default_horizon_days=int(
                listing.get("default_horizon_days", defaults.listing_default_horizon_days)
            ),
            max_pages=int(listing.get("max_pages", defaults.max_pages)),
            result_limit=int(listing.get("result_limit", defaults.result_limit)),
            page_delay_seconds=float(listing.get("page_delay_seconds", defaults.page_delay_seconds)),
            requests_per_second=float(http.get("requests_per_second", defaults.requests_per_second)),
            timeout=float(http.get("timeout", defaults.timeout)),
            perplexity_api_key=providers.get("perplexity_api_key") or None,
            perplexity_model=providers.get("perplexity_model", defaults.perplexity_model),
            firecrawl_api_key=providers.get("firecrawl_api_key") or None,
        )


def load_settings(config_path: Optional[str] = None) -> ExtractionSettings:
    """
    Convenience function to load extraction settings.

    Args:
        config_path: Optional path to a settings YAML file

    Returns:
        ExtractionSettings
    """
    if config_path:
        loader = ConfigLoader(str(Path(config_path).parent))
        return loader.load_settings(Path(config_path).name)
    return ConfigLoader().load_settings()
