"""
Configuration management for the tea importer.
Loads and validates settings from YAML files and environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "TEA_IMPORT_"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class GeneralConfig(BaseModel):
    """General configuration."""

    project_name: str = "tea-import"
    version: str = "0.1.0"
    log_level: str = "INFO"
    logs_dir: str = "logs"
    json_logs: bool = True


class BrowserConfig(BaseModel):
    """Shared browser process and page fetch configuration.

    Resource classes in blocked_resource_types are aborted for every page;
    only the primary document (and anything not listed) goes through.
    """

    model_config = ConfigDict(extra="forbid")

    headless: bool = True
    launch_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"]
    )
    navigation_timeout: float = 5.0  # seconds; a timeout is not an error
    wait_until: str = "domcontentloaded"
    user_agent: str = DEFAULT_USER_AGENT
    blocked_resource_types: list[str] = Field(
        default_factory=lambda: [
            "image",
            "stylesheet",
            "font",
            "media",
            "script",
            "xhr",
            "fetch",
        ]
    )
    prewarm: bool = True


class ExtractionConfig(BaseModel):
    """Selectors and thresholds for the product page heuristics."""

    model_config = ConfigDict(extra="forbid")

    title_selector: str = "h1.page-title"
    heading_selector: str = "h1"
    og_image_selector: str = 'meta[property="og:image"]'
    gallery_image_selector: str = ".gallery-placeholder__image"
    info_title_selector: str = ".info-title"
    categories_label: str = "Categories"
    min_steep_tokens: int = 3
    max_steep_seconds: int = 600


class ServerConfig(BaseModel):
    """HTTP API configuration."""

    host: str = "0.0.0.0"
    port: int = 3001


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml with local.yaml overrides (settings section).

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config = _load_yaml_file(config_dir / "settings.yaml")

    local_overrides = _load_yaml_file(config_dir / "local.yaml")
    if "settings" in local_overrides:
        config = _deep_merge(config, local_overrides["settings"])

    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with TEA_IMPORT_ and use
    double underscores for nested keys.

    Example:
        TEA_IMPORT_BROWSER__NAVIGATION_TIMEOUT=8

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}CONFIG_DIR":
            continue

        key_path = key[len(ENV_PREFIX) :].lower().split("__")
        if len(key_path) < 2:
            continue

        current = config
        for part in key_path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        final_key = key_path[-1]
        try:
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif "." in value:
                current[final_key] = float(value)
            else:
                current[final_key] = int(value)
        except ValueError:
            current[final_key] = value

    return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. YAML configuration files
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    config_dir = Path(os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "config"))

    config = _load_yaml_config(config_dir)
    config = _apply_env_overrides(config)

    return Settings(**config)


def reset_settings() -> None:
    """Drop cached settings so the next call reloads them. For testing only."""
    get_settings.cache_clear()


def get_project_root() -> Path:
    """Get the project root directory.

    Returns:
        Project root path.
    """
    # Assuming this file is at src/utils/config.py
    return Path(__file__).parent.parent.parent
