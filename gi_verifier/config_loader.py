"""Configuration loader for the GI product verifier."""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_ANTI_BOT_MARKERS = [
    "just a moment",
    "verify you are human",
    "checking your browser",
    "attention required",
    "cf-challenge",
    "enable javascript and cookies",
    "captcha",
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "browser": {
        "headless": True,
        "user_agent": DEFAULT_USER_AGENT,
        "launch_args": ["--no-sandbox", "--disable-setuid-sandbox"],
    },
    "sources": {
        "primary": {
            "url": "https://cdiptqccgi.com/",
            "navigation_timeout": 30000,
            "wait_until": "domcontentloaded",
            "fallback_wait_until": None,
            "selector_timeout": 10000,
            "result_timeout": 15000,
            "form_selector": "input[name='qrcode']",
            "input_selectors": ["input[name='qrcode']"],
            "submit_selector": "#locationsubmit",
            "invalid_selector": "h3",
            "invalid_text": "This is not a Genuine Product !",
            "invalid_match": "any",
            "table_selector": "table",
            "row_selector": "tr",
            "cell_selector": "th, td",
            "viewport": None,
            "extra_launch_args": [],
            "anti_bot_markers": DEFAULT_ANTI_BOT_MARKERS,
        },
        "secondary": {
            "url": "https://iictsrinagarcarpet-gi.org/",
            "navigation_timeout": 60000,
            "wait_until": "networkidle",
            "fallback_wait_until": "domcontentloaded",
            "selector_timeout": 10000,
            "result_timeout": 15000,
            "form_selector": ".featured-content #verifyform",
            "input_selectors": ["#verifyform input[type='text']", "#verifyform input"],
            "submit_selector": "#locationsubmit",
            "invalid_selector": "h3.text-center.mb-4",
            "invalid_text": "This is not a Genuine Carpet !",
            "invalid_match": "first",
            "table_selector": ".table-responsive table",
            "row_selector": "tbody tr",
            "cell_selector": "td",
            "viewport": {"width": 1920, "height": 1080},
            "extra_launch_args": [
                "--disable-dev-shm-usage",
                "--disable-accelerated-2d-canvas",
                "--no-first-run",
                "--no-zygote",
                "--disable-gpu",
            ],
            "anti_bot_markers": DEFAULT_ANTI_BOT_MARKERS,
        },
    },
    "orchestrator": {
        "secondary_attempts": 2,
        "backoff_seconds": 2,
    },
    "logging": {
        "level": "INFO",
        "file": "data/logs/verifier.log",
        "rotation": "1 week",
        "retention": "1 month",
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file merged over the built-in defaults.

    Args:
        config_path: Path to config file. If None, uses default locations and
            falls back to the defaults when none of them exists.

    Returns:
        Dictionary with configuration values.
    """
    # Load environment variables first
    load_dotenv()

    if config_path is not None and not Path(config_path).exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    if config_path is None:
        locations = [
            "config.yaml",
            "config.yml",
            "../config.yaml",
            "../config.yml",
            "/app/config.yaml",
        ]
        for loc in locations:
            if Path(loc).exists():
                config_path = loc
                break

    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    config = _deep_merge(DEFAULT_CONFIG, loaded)
    return _substitute_env_vars(config)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


_ENV_PLACEHOLDER = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<default>[^}]*))?\}")


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively resolve ``${VAR}`` / ``${VAR:default}`` placeholders.

    A value that is exactly one placeholder is parsed as a YAML scalar, so
    ``headless: ${VERIFIER_HEADLESS:true}`` yields a bool and timeouts stay
    ints. Placeholders embedded in longer strings are spliced in as text.
    Unset variables without a default are left untouched.
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if not isinstance(obj, str):
        return obj

    whole = _ENV_PLACEHOLDER.fullmatch(obj.strip())
    if whole:
        value = _resolve_placeholder(whole)
        return value if value == whole.group(0) else _parse_scalar(value)
    return _ENV_PLACEHOLDER.sub(_resolve_placeholder, obj)


def _resolve_placeholder(match) -> str:
    default = match.group("default")
    return os.getenv(match.group("name"), match.group(0) if default is None else default)


def _parse_scalar(value: str) -> Any:
    if not value:
        return value
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    return parsed if isinstance(parsed, (bool, int, float, str)) else value


def get_browser_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get browser configuration."""
    return config.get("browser", {})


def get_source_config(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Get configuration for one verification source ('primary' or 'secondary')."""
    sources = config.get("sources", {})
    if name not in DEFAULT_CONFIG["sources"]:
        raise KeyError(f"Unknown verification source: {name}")
    return _deep_merge(DEFAULT_CONFIG["sources"][name], sources.get(name) or {})


def get_orchestrator_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get fallback orchestration configuration."""
    return config.get("orchestrator", {})


def get_logging_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get logging configuration."""
    return config.get("logging", {})


def ensure_directories(config: Dict[str, Any]):
    """Ensure the log directory exists when file logging is enabled."""
    log_path = get_logging_config(config).get("file")
    if log_path:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
