"""Structured logging for the extension.

Loggers are tagged with a ``service`` name. Records are rendered as
key-value or JSON lines and written to stderr, to a per-run file in the log
directory, or both.
"""

import json
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from ..core.global_paths import GlobalPath

LOG_FILE_PREFIX = "crates-lsp-"
KEEP_LOG_FILES = 10
MAX_CAUSE_DEPTH = 10


class LogLevel(str, Enum):
    """Log severity levels, lowest first."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def priority(self) -> int:
        return list(LogLevel).index(self)

    @classmethod
    def parse(cls, value: Optional[str]) -> "LogLevel":
        if value is None:
            return cls.INFO
        text = value.strip().upper()
        if text == "WARNING":
            text = "WARN"
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"invalid log level: {value}") from None


class LogFormat(str, Enum):
    """Line format of log records."""
    KV = "kv"
    JSON = "json"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LogFormat":
        if value is None:
            return cls.KV
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"invalid log format: {value}") from None


@dataclass
class LogConfig:
    """Process-wide sink settings."""
    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.KV
    console: bool = False
    file: bool = False
    keep_files: int = KEEP_LOG_FILES
    _file_handle: Optional[TextIO] = None


_config = LogConfig()


def _describe(value: Any) -> Any:
    """Make a value JSON friendly. Exceptions carry their ``__cause__`` chain."""
    if isinstance(value, BaseException):
        parts = [str(value)]
        cause = value.__cause__
        while cause is not None and len(parts) <= MAX_CAUSE_DEPTH:
            parts.append(str(cause))
            cause = cause.__cause__
        return " Caused by: ".join(parts)
    if value is None or isinstance(value, (str, bool, int, float, dict, list, tuple)):
        return value
    return str(value)


def _kv_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    text = str(value)
    if not text or "=" in text or any(ch.isspace() for ch in text):
        return json.dumps(text, ensure_ascii=False)
    return text


def _render(record: Dict[str, Any]) -> str:
    if _config.format == LogFormat.JSON:
        return json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n"

    fields = [
        record["time"],
        f"level={record['level']}",
        f"msg={_kv_value(record['msg'])}",
    ]
    fields.extend(f"{key}={_kv_value(value)}" for key, value in record.items() if key not in {"time", "level", "msg"})
    return " ".join(fields) + "\n"


def _write(line: str) -> None:
    if _config.console:
        sys.stderr.write(line)
        sys.stderr.flush()
    if _config.file and _config._file_handle:
        _config._file_handle.write(line)
        _config._file_handle.flush()


class Logger:
    """Structured logger tagged with service metadata."""

    def __init__(self, tags: Optional[Dict[str, Any]] = None):
        self.tags = dict(tags or {})

    def _emit(self, level: LogLevel, message: Any, extra: Optional[Dict[str, Any]]) -> None:
        if level.priority < _config.level.priority:
            return
        record: Dict[str, Any] = {
            "time": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "level": level.value.lower(),
            "msg": _describe(message),
        }
        for key, value in {**self.tags, **(extra or {})}.items():
            if value is not None:
                record[key] = _describe(value)
        _write(_render(record))

    def debug(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.DEBUG, message, extra)

    def info(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.INFO, message, extra)

    def warn(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.WARN, message, extra)

    def error(self, message: Any = None, extra: Optional[Dict[str, Any]] = None) -> None:
        self._emit(LogLevel.ERROR, message, extra)


class Log:
    """Global logging interface and factory."""

    _loggers: Dict[str, Logger] = {}

    @classmethod
    def create(cls, tags: Optional[Dict[str, Any]] = None) -> Logger:
        """Return the logger for ``tags["service"]``, creating it on first use.

        Loggers without a service name are not cached.
        """
        tags = tags or {}
        service = tags.get("service")
        if not isinstance(service, str) or not service:
            return Logger(tags)
        if service not in cls._loggers:
            cls._loggers[service] = Logger(tags)
        return cls._loggers[service]

    @classmethod
    def configure(
        cls,
        *,
        level: Optional[LogLevel] = None,
        format: Optional[LogFormat] = None,
        console: Optional[bool] = None,
        file: Optional[bool] = None,
        keep_files: Optional[int] = None,
    ) -> None:
        """Update sink settings. Arguments left as ``None`` keep their value.

        While the file sink is enabled every call starts a new
        ``crates-lsp-<timestamp>.log`` in the log directory, and only the
        newest ``keep_files`` log files are kept.
        """
        if level is not None:
            _config.level = level
        if format is not None:
            _config.format = format
        if console is not None:
            _config.console = console
        if file is not None:
            _config.file = file
        if keep_files is not None:
            _config.keep_files = max(1, keep_files)

        cls.close()
        if not _config.file:
            return

        log_dir = Path(GlobalPath.log())
        log_dir.mkdir(parents=True, exist_ok=True)
        cls._prune(log_dir, _config.keep_files - 1)
        stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
        log_path = log_dir / f"{LOG_FILE_PREFIX}{stamp}.log"
        _config._file_handle = log_path.open("a", encoding="utf-8")

    @classmethod
    def _prune(cls, log_dir: Path, keep: int) -> None:
        """Delete the oldest log files so that at most ``keep`` remain."""
        log_files = sorted(
            log_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
            key=lambda p: (p.stat().st_mtime, p.name),
        )
        excess = len(log_files) - keep
        for old_file in log_files[:max(excess, 0)]:
            old_file.unlink(missing_ok=True)

    @classmethod
    def close(cls) -> None:
        """Close the log file handle if open."""
        if _config._file_handle:
            _config._file_handle.close()
            _config._file_handle = None
