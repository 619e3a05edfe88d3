"""Configuration management.

Settings are read from the global settings file, then the
``CRATES_LSP_CONFIG_CONTENT`` variable, then individual environment
overrides. Later sources win.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config_loader import deep_merge, load_settings_file, parse_settings
from .config_schema import ExtensionConfig, GithubConfig, LoggingConfig
from .global_paths import GlobalPath
from ..util.log import Log

log = Log.create({"service": "config"})

__all__ = [
    "ConfigError",
    "ConfigManager",
    "ExtensionConfig",
    "GithubConfig",
    "LoggingConfig",
]

CONFIG_FILENAMES = ["crates-lsp.json", "crates-lsp.jsonc"]
CONFIG_CONTENT_ENV = "CRATES_LSP_CONFIG_CONTENT"

ENV_OVERRIDES = {
    "CRATES_LSP_REPOSITORY": ("repository",),
    "CRATES_LSP_WORK_DIR": ("work_dir",),
    "CRATES_LSP_LOG_LEVEL": ("logging", "level"),
    "GITHUB_TOKEN": ("github", "token"),
}


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Config error in {path}: {message}")


def _env_overrides() -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, path in ENV_OVERRIDES.items():
        value = os.environ.get(key)
        if not value:
            continue
        target = result
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = value
    return result


class ConfigManager:
    """Loads and caches the effective extension configuration."""

    _cache: Optional[ExtensionConfig] = None

    @classmethod
    def reset(cls) -> None:
        """Reset cached configuration."""
        cls._cache = None

    @classmethod
    def get(cls) -> ExtensionConfig:
        if cls._cache is None:
            cls._cache = cls.load()
        return cls._cache

    @classmethod
    def path(cls) -> str:
        """Default settings file location."""
        return os.path.join(GlobalPath.config(), CONFIG_FILENAMES[-1])

    @classmethod
    def load(cls) -> ExtensionConfig:
        result: Dict[str, Any] = {}
        sources: List[str] = []

        for filename in CONFIG_FILENAMES:
            filepath = os.path.join(GlobalPath.config(), filename)
            data = load_settings_file(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(filepath)
                log.info("loaded config", {"path": filepath})

        env_config = os.environ.get(CONFIG_CONTENT_ENV)
        if env_config:
            data = parse_settings(env_config, CONFIG_CONTENT_ENV)
            if data:
                result = deep_merge(result, data)
                sources.append(CONFIG_CONTENT_ENV)

        result = deep_merge(result, _env_overrides())

        try:
            config = ExtensionConfig.model_validate(result)
        except ValidationError as e:
            raise ConfigError(sources[-1] if sources else "environment", str(e)) from e

        if config.work_dir is None:
            config.work_dir = Path(GlobalPath.work())
        return config
