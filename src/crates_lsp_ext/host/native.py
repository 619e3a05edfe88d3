"""Host implementation for running outside an editor.

Talks to the GitHub REST API with ``httpx``, unpacks archives with
``tarfile``/``zipfile`` and reports installation status through the logger
and an optional callback.
"""

from __future__ import annotations

import gzip
import os
import platform
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .api import (
    Architecture,
    DownloadedFileType,
    GithubRelease,
    GithubReleaseAsset,
    GithubReleaseOptions,
    HostError,
    InstallationStatus,
    Os,
)
from ..util.log import Log

log = Log.create({"service": "host.native"})

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "crates-lsp-extension"

StatusCallback = Callable[[str, InstallationStatus, Optional[str]], None]

_SYSTEMS = {
    "Darwin": Os.MAC,
    "Linux": Os.LINUX,
    "Windows": Os.WINDOWS,
}

_MACHINES = {
    "arm64": Architecture.AARCH64,
    "aarch64": Architecture.AARCH64,
    "x86_64": Architecture.X86_64,
    "amd64": Architecture.X86_64,
    "x86": Architecture.X86,
    "i386": Architecture.X86,
    "i686": Architecture.X86,
}


def _safe_join(base: Path, relative: Path) -> Optional[Path]:
    try:
        target = (base / relative).resolve()
        base_resolved = base.resolve()
    except OSError:
        return None
    if target == base_resolved or base_resolved in target.parents:
        return target
    return None


def _extract_zip(archive: Path, destination: Path) -> None:
    with zipfile.ZipFile(archive, "r") as zf:
        for info in zf.infolist():
            target = _safe_join(destination, Path(info.filename))
            if not target:
                log.warn("skipping archive member outside destination", {"member": info.filename})
                continue
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info, "r") as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)


def _extract_tar_gz(archive: Path, destination: Path) -> None:
    with tarfile.open(archive, "r:gz") as tf:
        for member in tf.getmembers():
            target = _safe_join(destination, Path(member.name))
            if not target:
                log.warn("skipping archive member outside destination", {"member": member.name})
                continue
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            if not member.isfile():
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            src = tf.extractfile(member)
            if src is None:
                continue
            with src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)


def unpack(archive: Path, dest: Path, file_type: DownloadedFileType) -> None:
    """Unpack a downloaded file into ``dest`` according to ``file_type``."""
    try:
        if file_type == DownloadedFileType.GZIP_TAR:
            dest.mkdir(parents=True, exist_ok=True)
            _extract_tar_gz(archive, dest)
        elif file_type == DownloadedFileType.ZIP:
            dest.mkdir(parents=True, exist_ok=True)
            _extract_zip(archive, dest)
        elif file_type == DownloadedFileType.GZIP:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with gzip.open(archive, "rb") as src, open(dest, "wb") as dst:
                shutil.copyfileobj(src, dst)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(archive, dest)
    except (OSError, tarfile.TarError, zipfile.BadZipFile) as error:
        raise HostError(f"failed to extract {file_type.value} archive into '{dest}': {error}") from error


def _select_release(releases: List[Dict[str, Any]], options: GithubReleaseOptions) -> Optional[Dict[str, Any]]:
    for release in releases:
        if not isinstance(release, dict):
            continue
        if release.get("draft"):
            continue
        if release.get("prerelease") and not options.pre_release:
            continue
        if options.require_assets and not release.get("assets"):
            continue
        return release
    return None


def _to_release(data: Dict[str, Any]) -> GithubRelease:
    assets = []
    for item in data.get("assets") or []:
        name = item.get("name") if isinstance(item, dict) else None
        url = item.get("browser_download_url") if isinstance(item, dict) else None
        if name and url:
            assets.append(GithubReleaseAsset(name=name, download_url=url))
    return GithubRelease(version=str(data.get("tag_name") or ""), assets=assets)


class NativeHost:
    """Host backed by the local machine and the GitHub REST API."""

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        token: Optional[str] = None,
        timeout: float = 60.0,
        download_timeout: float = 180.0,
        transport: Optional[httpx.BaseTransport] = None,
        status_callback: Optional[StatusCallback] = None,
    ) -> None:
        headers = {"User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._api_url = api_url.rstrip("/")
        self._download_timeout = download_timeout
        self._status_callback = status_callback
        self._client = httpx.Client(
            transport=transport,
            timeout=timeout,
            headers=headers,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "NativeHost":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def current_platform(self) -> Tuple[Os, Architecture]:
        system = platform.system()
        machine = platform.machine().lower()
        os_kind = _SYSTEMS.get(system)
        arch = _MACHINES.get(machine)
        if os_kind is None or arch is None:
            raise HostError(f"unsupported platform: {system}-{machine}")
        return os_kind, arch

    def latest_github_release(self, repo: str, options: GithubReleaseOptions) -> GithubRelease:
        url = f"{self._api_url}/repos/{repo}/releases"
        try:
            response = self._client.get(
                url,
                headers={"Accept": "application/vnd.github+json"},
                params={"per_page": 30},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as error:
            raise HostError(f"failed to fetch releases for {repo}: {error}") from error
        except ValueError as error:
            raise HostError(f"invalid release listing for {repo}: {error}") from error

        if not isinstance(payload, list):
            raise HostError(f"invalid release listing for {repo}: expected a list")

        selected = _select_release(payload, options)
        if selected is None:
            raise HostError(
                f"no release found matching {options.model_dump()} for {repo}"
            )
        release = _to_release(selected)
        log.debug("selected release", {"repo": repo, "version": release.version, "assets": len(release.assets)})
        return release

    def download_file(self, url: str, dest: Path, file_type: DownloadedFileType) -> None:
        staging_dir = dest.parent if dest.parent.exists() else None
        fd, tmp_name = tempfile.mkstemp(prefix=".download-", dir=staging_dir)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                with self._client.stream("GET", url, timeout=self._download_timeout) as response:
                    response.raise_for_status()
                    for chunk in response.iter_bytes():
                        out.write(chunk)
            unpack(tmp_path, dest, file_type)
        except httpx.HTTPError as error:
            raise HostError(f"failed to download {url}: {error}") from error
        except OSError as error:
            raise HostError(f"failed to write download of {url}: {error}") from error
        finally:
            tmp_path.unlink(missing_ok=True)
        log.info("downloaded file", {"url": url, "dest": str(dest)})

    def make_file_executable(self, path: Path) -> None:
        if os.name == "nt":
            return
        try:
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as error:
            raise HostError(f"failed to make '{path}' executable: {error}") from error

    def set_language_server_installation_status(
        self,
        language_server_id: str,
        status: InstallationStatus,
        message: Optional[str] = None,
    ) -> None:
        log.info("installation status", {"server": language_server_id, "status": status.value, "message": message})
        if self._status_callback is None:
            return
        try:
            self._status_callback(language_server_id, status, message)
        except Exception as error:
            log.error("status callback failed", {"server": language_server_id, "error": str(error)})
