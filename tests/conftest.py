from collections.abc import Iterator
from pathlib import Path

import pytest

from crates_lsp_ext.core.config import ConfigManager
from crates_lsp_ext.util.log import KEEP_LOG_FILES, Log, LogFormat, LogLevel


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    home = tmp_path / "home"
    monkeypatch.setenv("CRATES_LSP_TEST_HOME", str(home))
    for key in ("CRATES_LSP_REPOSITORY", "CRATES_LSP_WORK_DIR", "CRATES_LSP_LOG_LEVEL", "CRATES_LSP_CONFIG_CONTENT", "GITHUB_TOKEN"):
        monkeypatch.delenv(key, raising=False)
    ConfigManager.reset()
    try:
        yield home
    finally:
        ConfigManager.reset()
        Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=False, file=False, keep_files=KEEP_LOG_FILES)
