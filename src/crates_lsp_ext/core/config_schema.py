"""Configuration schema: pydantic models for the extension settings file."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GithubConfig(BaseModel):
    """GitHub API access."""
    api_url: str = "https://api.github.com"
    token: Optional[str] = None
    timeout: float = Field(60.0, gt=0)
    download_timeout: float = Field(180.0, gt=0)

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Optional[str] = None
    format: Optional[Literal["kv", "json"]] = None
    console: Optional[bool] = None
    file: Optional[bool] = None
    keep_files: Optional[int] = Field(None, ge=1)

    model_config = ConfigDict(extra="forbid")


class ExtensionConfig(BaseModel):
    """Main configuration schema."""
    schema_: Optional[str] = Field(None, alias="$schema")

    repository: str = "MathiasPius/crates-lsp"
    tool_name: str = "crates-lsp"
    pre_release: bool = False
    work_dir: Optional[Path] = None

    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)

    github: GithubConfig = Field(default_factory=GithubConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str) -> str:
        owner, _, name = value.partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"repository must look like 'owner/name', got {value!r}")
        return value
