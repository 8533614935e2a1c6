import json
import os
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_SCOPES,
    DEFAULT_STATUS_CLEAR_SECONDS,
    VERIFIER_MAX_LENGTH,
    VERIFIER_MIN_LENGTH,
    VERIFIER_STORE_FILE,
)

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (OAuth PKCE)
    "spotify_client_id": "",
    "spotify_redirect_uri": "http://127.0.0.1:8888/callback",
    "spotify_scopes": list(DEFAULT_SCOPES),
    "spotify_verifier_length": VERIFIER_MAX_LENGTH,
    "verifier_store_file": VERIFIER_STORE_FILE,
    "open_browser": True,

    # Now playing
    "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
    "status_clear_seconds": DEFAULT_STATUS_CLEAR_SECONDS,
    "http_timeout": DEFAULT_HTTP_TIMEOUT,

    "log_level": "INFO",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "spotify_verifier_length": {
        "type": int,
        "required": False,
        "min": VERIFIER_MIN_LENGTH,
        "max": VERIFIER_MAX_LENGTH,
    },
    "verifier_store_file": {"type": str, "required": False},
    "open_browser": {"type": bool, "required": False},

    "poll_interval_ms": {"type": int, "required": False, "min": 1000, "max": 600000},
    "status_clear_seconds": {"type": (int, float), "required": False, "min": 0, "max": 60},
    "http_timeout": {"type": (int, float), "required": False, "min": 1, "max": 120},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file {path} not found.")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}") from e


def _type_label(expected) -> str:
    if isinstance(expected, tuple):
        return "/".join(t.__name__ for t in expected)
    return expected.__name__


def check_value(key: str, value: Any) -> Optional[str]:
    """Return an error message if `value` is not acceptable for `key`, else None."""
    rules = CONFIG_SCHEMA.get(key)
    if rules is None:
        return f"Unknown config key: {key}"

    # bool is an int subclass; True is not a poll interval.
    expected = rules["type"]
    if not isinstance(value, expected) or (isinstance(value, bool) and expected is not bool):
        return f"Field '{key}' must be {_type_label(expected)}, got {type(value).__name__}"

    if "element_type" in rules:
        bad = [v for v in value if not isinstance(v, rules["element_type"]) or not v]
        if bad:
            return f"Field '{key}' must be a list of non-empty strings, got invalid elements: {bad}"

    if "choices" in rules and value not in rules["choices"]:
        return f"Field '{key}' must be one of {rules['choices']}, got '{value}'"

    if "min" in rules and value < rules["min"]:
        return f"Field '{key}' must be >= {rules['min']}, got {value}"
    if "max" in rules and value > rules["max"]:
        return f"Field '{key}' must be <= {rules['max']}, got {value}"

    if key == "spotify_redirect_uri":
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return f"Field '{key}' must be an http(s) URL registered on the Spotify app, got '{value}'"

    if key == "spotify_scopes" and not value:
        return f"Field '{key}' needs at least one scope (user-read-currently-playing)"

    return None


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []
    for key, rules in CONFIG_SCHEMA.items():
        if key not in config:
            if rules.get("required"):
                errors.append(f"Missing required field: {key}")
            continue
        error = check_value(key, config[key])
        if error:
            errors.append(error)
    return not errors, errors


def update_config(key: str, value: Any, path: str = CONFIG_PATH) -> tuple[bool, str]:
    """Validate and persist a single field. Returns (success, message)."""
    error = check_value(key, value)
    if error:
        return False, error if key not in CONFIG_SCHEMA else f"Validation failed: {error}"

    config = load_config(path)
    config[key] = value
    save_config(config, path)
    return True, f"Updated '{key}' to '{value}'"


def reset_to_defaults(path: str = CONFIG_PATH) -> tuple[bool, str]:
    """Reset configuration to default values, keeping the Spotify client id."""
    try:
        defaults = json.loads(json.dumps(DEFAULT_CONFIG))
        if os.path.exists(path):
            defaults["spotify_client_id"] = load_config(path).get("spotify_client_id", "")
        save_config(defaults, path)
        return True, "Configuration reset to defaults"
    except (OSError, json.JSONDecodeError) as e:
        return False, f"Failed to reset config: {e}"
