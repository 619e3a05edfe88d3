"""Per-user directory paths for the crates-lsp extension.

Directories follow the platform conventions reported by ``platformdirs``.
Tests redirect them with the ``CRATES_LSP_TEST_HOME`` environment variable.
"""

import os
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "crates-lsp-extension"


class GlobalPath:
    """Global path management for extension directories."""

    @classmethod
    def home(cls) -> str:
        """Get the root override used by tests, if any."""
        return os.environ.get("CRATES_LSP_TEST_HOME", "")

    @classmethod
    def data(cls) -> str:
        """Application data directory."""
        home = cls.home()
        if home:
            return str(Path(home) / "data")
        return user_data_dir(APP_NAME)

    @classmethod
    def work(cls) -> str:
        """Directory holding downloaded language server versions."""
        return str(Path(cls.data()) / "crates-lsp")

    @classmethod
    def log(cls) -> str:
        """Log file directory."""
        return str(Path(cls.data()) / "log")

    @classmethod
    def config(cls) -> str:
        """Configuration directory."""
        home = cls.home()
        if home:
            return str(Path(home) / "config")
        return user_config_dir(APP_NAME)

    @classmethod
    def initialize(cls) -> None:
        """Create the configuration and log directories."""
        for path in [cls.config(), cls.log()]:
            Path(path).mkdir(parents=True, exist_ok=True)
