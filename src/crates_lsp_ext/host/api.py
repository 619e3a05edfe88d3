"""Host capability contract.

Everything the resolver needs from the editor runtime is described here: the
platform enums, GitHub release models, installation status values, the
launch command descriptor and the ``Host`` protocol itself.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field


class HostError(RuntimeError):
    """Raised when a host capability fails."""


class Os(str, Enum):
    """Operating systems a language server binary is published for."""
    MAC = "mac"
    LINUX = "linux"
    WINDOWS = "windows"


class Architecture(str, Enum):
    """CPU architectures a language server binary is published for."""
    AARCH64 = "aarch64"
    X86 = "x86"
    X86_64 = "x86_64"


class DownloadedFileType(str, Enum):
    """How a downloaded file is unpacked.

    Archive kinds extract into a destination directory; ``GZIP`` and
    ``UNCOMPRESSED`` write a single destination file.
    """
    GZIP_TAR = "gzip_tar"
    ZIP = "zip"
    GZIP = "gzip"
    UNCOMPRESSED = "uncompressed"


class InstallationStatus(str, Enum):
    """Language server installation phases reported to the host."""
    CHECKING_FOR_UPDATE = "checking_for_update"
    DOWNLOADING = "downloading"
    FAILED = "failed"


class GithubReleaseOptions(BaseModel):
    """Filters applied when looking up the latest release."""
    require_assets: bool = True
    pre_release: bool = False

    model_config = ConfigDict(frozen=True)


class GithubReleaseAsset(BaseModel):
    """A downloadable file attached to a release."""
    name: str
    download_url: str


class GithubRelease(BaseModel):
    """Release metadata; ``version`` is the release tag."""
    version: str
    assets: List[GithubReleaseAsset] = Field(default_factory=list)


class Command(BaseModel):
    """Launch descriptor for a language server process."""
    command: str
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)


class Host(Protocol):
    """Capabilities the editor runtime provides to the extension."""

    def current_platform(self) -> Tuple[Os, Architecture]: ...

    def latest_github_release(self, repo: str, options: GithubReleaseOptions) -> GithubRelease: ...

    def download_file(self, url: str, dest: Path, file_type: DownloadedFileType) -> None: ...

    def make_file_executable(self, path: Path) -> None: ...

    def set_language_server_installation_status(
        self,
        language_server_id: str,
        status: InstallationStatus,
        message: Optional[str] = None,
    ) -> None: ...
