"""Pinned tool resolver.

Finds the newest published release of a tool on GitHub, installs the asset
built for the running platform into a version directory and keeps only
that version on disk. The resolved path is memoised for the lifetime of the
resolver instance.
"""

from __future__ import annotations

import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .host.api import (
    Architecture,
    DownloadedFileType,
    GithubRelease,
    GithubReleaseAsset,
    GithubReleaseOptions,
    Host,
    HostError,
    InstallationStatus,
    Os,
)
from .util.log import Log

log = Log.create({"service": "resolver"})

ARCH_TOKENS = {
    Architecture.AARCH64: "aarch64",
    Architecture.X86: "x86",
    Architecture.X86_64: "x86_64",
}

OS_TOKENS = {
    Os.MAC: "apple-darwin.tar.gz",
    Os.LINUX: "unknown-linux-gnu.tar.gz",
    Os.WINDOWS: "pc-windows-msvc.zip",
}

FILE_TYPES = {
    Os.MAC: DownloadedFileType.GZIP_TAR,
    Os.LINUX: DownloadedFileType.GZIP_TAR,
    Os.WINDOWS: DownloadedFileType.ZIP,
}


class ResolveError(RuntimeError):
    """Base class for failures that abort a resolution."""


class ReleaseFetchError(ResolveError):
    """The latest release could not be fetched."""


class AssetNotFoundError(ResolveError):
    """The release has no asset for the running platform."""

    def __init__(self, asset_name: str):
        self.asset_name = asset_name
        super().__init__(f"no asset found matching {asset_name!r}")


class DirectoryCreateError(ResolveError):
    """The version directory could not be created."""


class DownloadError(ResolveError):
    """The asset could not be downloaded or extracted."""


class PermissionSetError(ResolveError):
    """The installed binary could not be made executable."""


@dataclass(frozen=True)
class ToolIdentity:
    """Where a tool is published and how its releases are selected."""
    repository: str
    name: str
    options: GithubReleaseOptions = field(default_factory=GithubReleaseOptions)


CRATES_LSP = ToolIdentity(repository="MathiasPius/crates-lsp", name="crates-lsp")


def asset_name(tool: str, os_kind: Os, arch: Architecture) -> str:
    """Return the release asset name published for a platform."""
    return f"{tool}-{ARCH_TOKENS[arch]}-{OS_TOKENS[os_kind]}"


def binary_name(tool: str, os_kind: Os) -> str:
    if os_kind == Os.WINDOWS:
        return f"{tool}.exe"
    return tool


def find_asset(release: GithubRelease, name: str) -> GithubReleaseAsset:
    for asset in release.assets:
        if asset.name == name:
            return asset
    raise AssetNotFoundError(name)


class PinnedToolResolver:
    """Resolve a ready-to-run binary for one tool, installing it on demand.

    Versions are kept in ``<work_dir>/<tool>-<version>/``. After a new
    version is installed every other entry of ``work_dir`` is removed.
    """

    def __init__(
        self,
        host: Host,
        tool: ToolIdentity = CRATES_LSP,
        work_dir: Optional[Path] = None,
    ) -> None:
        self.host = host
        self.tool = tool
        self.work_dir = Path(work_dir) if work_dir is not None else Path(".")
        self.cached_binary_path: Optional[str] = None
        self._lock = threading.Lock()

    def resolve(self, language_server_id: str) -> str:
        """Return the path of the tool binary, downloading it if needed."""
        with self._lock:
            return self._resolve(language_server_id)

    def _resolve(self, language_server_id: str) -> str:
        cached = self.cached_binary_path
        if cached and Path(cached).is_file():
            return cached

        self._notify(language_server_id, InstallationStatus.CHECKING_FOR_UPDATE)

        try:
            release = self.host.latest_github_release(self.tool.repository, self.tool.options)
        except HostError as error:
            raise ReleaseFetchError(f"failed to fetch latest release of {self.tool.repository}: {error}") from error

        try:
            os_kind, arch = self.host.current_platform()
        except HostError as error:
            raise ResolveError(str(error)) from error
        asset = find_asset(release, asset_name(self.tool.name, os_kind, arch))

        # Tags may contain "/"; cleanup keeps the top-level entry under work_dir.
        version_dir_name = f"{self.tool.name}-{release.version}"
        version_parts = Path(version_dir_name).parts
        if ".." in version_parts:
            raise ResolveError(f"release version {release.version!r} escapes the working directory")
        version_dir = self.work_dir / version_dir_name
        try:
            version_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise DirectoryCreateError(f"failed to create directory '{version_dir}': {error}") from error

        binary_path = version_dir / binary_name(self.tool.name, os_kind)

        if not binary_path.is_file():
            self._notify(language_server_id, InstallationStatus.DOWNLOADING)
            log.info("installing", {"tool": self.tool.name, "version": release.version, "asset": asset.name})

            try:
                self.host.download_file(asset.download_url, version_dir, FILE_TYPES[os_kind])
            except HostError as error:
                raise DownloadError(f"failed to download file: {error}") from error

            try:
                self.host.make_file_executable(binary_path)
            except HostError as error:
                raise PermissionSetError(f"failed to make '{binary_path}' executable: {error}") from error

            self._remove_stale_versions(version_parts[0])

        resolved = str(binary_path)
        self.cached_binary_path = resolved
        return resolved

    def _notify(self, language_server_id: str, status: InstallationStatus) -> None:
        try:
            self.host.set_language_server_installation_status(language_server_id, status)
        except Exception as error:
            log.warn("failed to report installation status", {"status": status.value, "error": str(error)})

    def _remove_stale_versions(self, keep: str) -> None:
        try:
            entries = list(self.work_dir.iterdir())
        except OSError as error:
            log.warn("failed to list working directory", {"dir": str(self.work_dir), "error": str(error)})
            return

        for entry in entries:
            if entry.name == keep:
                continue
            try:
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                log.debug("removed stale entry", {"path": str(entry)})
            except OSError as error:
                log.warn("failed to remove stale entry", {"path": str(entry), "error": str(error)})
