"""Configuration loading and endpoint derivation for the chat client.

Configuration is a plain dict loaded from a JSON file and merged over
DEFAULT_CONFIG, so a config file only needs the keys it overrides.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "server": {
        "origin": "http://127.0.0.1:8000",
        "ws_path": "/ws",
        "api_path": "/api",
        "open_timeout": 10.0,
        "request_timeout": 10.0,
    },
    "reconnect": {
        "mode": "backoff",
        "base_delay": 1.0,
        "multiplier": 2.0,
        "max_delay": 30.0,
        "jitter": 0.5,
        "max_attempts": 10,
    },
    "upload": {
        "max_upload_bytes": 25 * 1024 * 1024,
        "allowed_extensions": [".jpg", ".jpeg", ".png", ".pdf", ".dwg", ".dxf", ".skp", ".rvt", ".zip"],
    },
    "history": {
        "page_size": 50,
    },
}


def merge_config(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overrides into a deep copy of base.

    Nested dicts are merged key by key; any other value replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load the chat configuration.

    Args:
        config_path: JSON file with overrides; ``None`` returns the defaults.

    Returns:
        Merged configuration dict.

    Raises:
        FileNotFoundError: If config_path does not exist.
        ValueError: If the file is not a JSON object.
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, encoding="utf-8") as f:
        overrides = json.load(f)

    if not isinstance(overrides, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")

    logger.info("ChatConfig: loaded %s", config_path)
    return merge_config(DEFAULT_CONFIG, overrides)


def derive_ws_url(origin: str, ws_path: str = "/ws") -> str:
    """Derive the WebSocket endpoint from the page origin.

    ``https`` upgrades to ``wss``, ``http`` to ``ws``; host and port are kept
    and the path is replaced by ws_path.

    Example:
        >>> derive_ws_url("https://hub.hau.edu.vn/groups/chat?groupId=1")
        'wss://hub.hau.edu.vn/ws'

    Raises:
        ValueError: If origin has no host or an unsupported scheme.
    """
    parts = urlsplit(origin)
    if parts.scheme == "https":
        scheme = "wss"
    elif parts.scheme == "http":
        scheme = "ws"
    elif parts.scheme in ("ws", "wss"):
        scheme = parts.scheme
    else:
        raise ValueError(f"Unsupported origin scheme: {parts.scheme!r}")

    if not parts.netloc:
        raise ValueError(f"Origin has no host: {origin!r}")

    return urlunsplit((scheme, parts.netloc, ws_path, "", ""))


def derive_api_url(origin: str, api_path: str = "/api") -> str:
    """Derive the REST base URL (scheme and host of origin plus api_path)."""
    parts = urlsplit(origin)
    if not parts.netloc:
        raise ValueError(f"Origin has no host: {origin!r}")
    return urlunsplit((parts.scheme, parts.netloc, api_path.rstrip("/"), "", ""))
