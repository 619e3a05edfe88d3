"""Settings parsing: JSONC text, ``{env:VAR}`` expansion and layered merging."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict

import commentjson

from ..util.log import Log

log = Log.create({"service": "config.loader"})

ENV_REFERENCE = re.compile(r"\{env:([^}]+)\}")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated with ``override``; nested objects merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def substitute_env_vars(text: str) -> str:
    """Expand ``{env:VAR}`` references. Unset variables expand to ``""``."""
    return ENV_REFERENCE.sub(lambda match: os.environ.get(match.group(1), ""), text)


def parse_settings(text: str, source: str) -> Dict[str, Any]:
    """Parse one layer of settings.

    ``source`` names the layer in log records. Text that is not JSONC, or
    whose top level is not an object, is logged and contributes nothing.
    """
    try:
        data = commentjson.loads(substitute_env_vars(text))
    except ValueError as e:
        log.error("failed to parse settings", {"source": source, "error": str(e)})
        return {}

    if not isinstance(data, dict):
        log.error("settings are not an object", {"source": source, "type": type(data).__name__})
        return {}
    return data


def load_settings_file(filepath: str) -> Dict[str, Any]:
    """Read and parse a settings file. Missing or unreadable files yield ``{}``."""
    path = Path(filepath)
    if not path.is_file():
        return {}

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.error("failed to read settings file", {"path": filepath, "error": str(e)})
        return {}
    return parse_settings(text, filepath)
