"""Shared test helpers."""

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from crates_lsp_ext.host.api import (
    Architecture,
    DownloadedFileType,
    GithubRelease,
    GithubReleaseAsset,
    GithubReleaseOptions,
    HostError,
    InstallationStatus,
    Os,
)


def release(version: str, *names: str) -> GithubRelease:
    """Build a release whose assets download from example.test."""
    return GithubRelease(
        version=version,
        assets=[
            GithubReleaseAsset(name=name, download_url=f"https://example.test/{version}/{name}")
            for name in names
        ],
    )


def tar_gz_bytes(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tf.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def zip_bytes(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class FakeHost:
    """In-memory host that records every capability call.

    ``download_file`` writes a fake binary named after the tool into the
    destination directory, like extracting a real release archive would.
    """

    def __init__(
        self,
        latest: Optional[GithubRelease] = None,
        platform: Tuple[Os, Architecture] = (Os.LINUX, Architecture.X86_64),
        tool: str = "crates-lsp",
    ) -> None:
        self.latest = latest
        self.platform = platform
        self.tool = tool
        self.calls: List[Tuple[Any, ...]] = []
        self.statuses: List[Tuple[str, InstallationStatus, Optional[str]]] = []
        self.release_error: Optional[Exception] = None
        self.download_error: Optional[Exception] = None
        self.chmod_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None

    def __enter__(self) -> "FakeHost":
        return self

    def __exit__(self, *args) -> None:
        self.calls.append(("close",))

    def current_platform(self) -> Tuple[Os, Architecture]:
        self.calls.append(("current_platform",))
        return self.platform

    def latest_github_release(self, repo: str, options: GithubReleaseOptions) -> GithubRelease:
        self.calls.append(("latest_github_release", repo, options))
        if self.release_error is not None:
            raise self.release_error
        if self.latest is None:
            raise HostError(f"no release found for {repo}")
        return self.latest

    def download_file(self, url: str, dest: Path, file_type: DownloadedFileType) -> None:
        self.calls.append(("download_file", url, dest, file_type))
        if self.download_error is not None:
            raise self.download_error
        name = f"{self.tool}.exe" if self.platform[0] == Os.WINDOWS else self.tool
        dest.mkdir(parents=True, exist_ok=True)
        (dest / name).write_bytes(b"\x7fELF fake binary")

    def make_file_executable(self, path: Path) -> None:
        self.calls.append(("make_file_executable", path))
        if self.chmod_error is not None:
            raise self.chmod_error
        path.chmod(path.stat().st_mode | 0o111)

    def set_language_server_installation_status(
        self,
        language_server_id: str,
        status: InstallationStatus,
        message: Optional[str] = None,
    ) -> None:
        self.statuses.append((language_server_id, status, message))
        if self.status_error is not None:
            raise self.status_error

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]
