from __future__ import annotations

import gzip
import json
import os
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

from crates_lsp_ext.host.api import (
    Architecture,
    DownloadedFileType,
    GithubReleaseOptions,
    HostError,
    InstallationStatus,
    Os,
)
from crates_lsp_ext.host.native import NativeHost
from tests.helpers import tar_gz_bytes, zip_bytes


API = "https://api.github.test"


def _release(tag: str, *, assets: int = 1, draft: bool = False, prerelease: bool = False) -> Dict[str, Any]:
    return {
        "tag_name": tag,
        "draft": draft,
        "prerelease": prerelease,
        "assets": [
            {
                "name": f"asset-{index}.tar.gz",
                "browser_download_url": f"https://downloads.test/{tag}/asset-{index}.tar.gz",
            }
            for index in range(assets)
        ],
    }


def _host(handler, **kwargs) -> NativeHost:
    return NativeHost(api_url=API, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.parametrize(
    ("system", "machine", "expected"),
    [
        ("Darwin", "arm64", (Os.MAC, Architecture.AARCH64)),
        ("Linux", "x86_64", (Os.LINUX, Architecture.X86_64)),
        ("Linux", "aarch64", (Os.LINUX, Architecture.AARCH64)),
        ("Windows", "AMD64", (Os.WINDOWS, Architecture.X86_64)),
        ("Linux", "i686", (Os.LINUX, Architecture.X86)),
    ],
)
def test_current_platform_maps_system_and_machine(
    monkeypatch: pytest.MonkeyPatch,
    system: str,
    machine: str,
    expected,
) -> None:
    monkeypatch.setattr("crates_lsp_ext.host.native.platform.system", lambda: system)
    monkeypatch.setattr("crates_lsp_ext.host.native.platform.machine", lambda: machine)

    assert NativeHost().current_platform() == expected


def test_current_platform_rejects_unknown_machine(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("crates_lsp_ext.host.native.platform.system", lambda: "Linux")
    monkeypatch.setattr("crates_lsp_ext.host.native.platform.machine", lambda: "riscv64")

    with pytest.raises(HostError, match="unsupported platform: Linux-riscv64"):
        NativeHost().current_platform()


def test_latest_release_skips_drafts_prereleases_and_empty_releases() -> None:
    requests: List[httpx.Request] = []
    listing = [
        _release("v0.5.0", draft=True),
        _release("v0.5.0-rc1", prerelease=True),
        _release("v0.4.1", assets=0),
        _release("v0.4.0", assets=2),
        _release("v0.3.0"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=listing)

    with _host(handler, token="secret") as host:
        release = host.latest_github_release("MathiasPius/crates-lsp", GithubReleaseOptions())

    assert release.version == "v0.4.0"
    assert [asset.name for asset in release.assets] == ["asset-0.tar.gz", "asset-1.tar.gz"]
    assert release.assets[0].download_url == "https://downloads.test/v0.4.0/asset-0.tar.gz"
    assert requests[0].url.path == "/repos/MathiasPius/crates-lsp/releases"
    assert requests[0].headers["authorization"] == "Bearer secret"
    assert requests[0].headers["accept"] == "application/vnd.github+json"


def test_latest_release_can_include_prereleases() -> None:
    listing = [_release("v0.5.0-rc1", prerelease=True), _release("v0.4.0")]

    with _host(lambda request: httpx.Response(200, json=listing)) as host:
        release = host.latest_github_release("o/r", GithubReleaseOptions(pre_release=True))

    assert release.version == "v0.5.0-rc1"


def test_latest_release_without_asset_requirement_accepts_empty_release() -> None:
    listing = [_release("v0.4.1", assets=0), _release("v0.4.0")]

    with _host(lambda request: httpx.Response(200, json=listing)) as host:
        release = host.latest_github_release("o/r", GithubReleaseOptions(require_assets=False))

    assert release.version == "v0.4.1"
    assert release.assets == []


def test_latest_release_reports_no_match() -> None:
    listing = [_release("v0.5.0-rc1", prerelease=True)]

    with _host(lambda request: httpx.Response(200, json=listing)) as host:
        with pytest.raises(HostError, match="no release found"):
            host.latest_github_release("o/r", GithubReleaseOptions())


def test_latest_release_reports_http_errors() -> None:
    with _host(lambda request: httpx.Response(403, json={"message": "rate limited"})) as host:
        with pytest.raises(HostError, match="failed to fetch releases for o/r"):
            host.latest_github_release("o/r", GithubReleaseOptions())


def test_latest_release_rejects_non_list_payload() -> None:
    with _host(lambda request: httpx.Response(200, content=json.dumps({"message": "x"}).encode())) as host:
        with pytest.raises(HostError, match="expected a list"):
            host.latest_github_release("o/r", GithubReleaseOptions())


def test_download_extracts_tar_gz(tmp_path: Path) -> None:
    payload = tar_gz_bytes({"crates-lsp": b"binary", "docs/README.md": b"readme"})
    dest = tmp_path / "crates-lsp-v0.4.0"

    with _host(lambda request: httpx.Response(200, content=payload)) as host:
        host.download_file("https://downloads.test/a.tar.gz", dest, DownloadedFileType.GZIP_TAR)

    assert (dest / "crates-lsp").read_bytes() == b"binary"
    assert (dest / "docs" / "README.md").read_bytes() == b"readme"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["crates-lsp-v0.4.0"]


def test_download_extracts_zip(tmp_path: Path) -> None:
    payload = zip_bytes({"crates-lsp.exe": b"MZ"})
    dest = tmp_path / "crates-lsp-v0.4.0"

    with _host(lambda request: httpx.Response(200, content=payload)) as host:
        host.download_file("https://downloads.test/a.zip", dest, DownloadedFileType.ZIP)

    assert (dest / "crates-lsp.exe").read_bytes() == b"MZ"


def test_download_skips_members_outside_destination(tmp_path: Path) -> None:
    payload = tar_gz_bytes({"../escape": b"nope", "crates-lsp": b"binary"})
    dest = tmp_path / "out"

    with _host(lambda request: httpx.Response(200, content=payload)) as host:
        host.download_file("https://downloads.test/a.tar.gz", dest, DownloadedFileType.GZIP_TAR)

    assert (dest / "crates-lsp").exists()
    assert not (tmp_path / "escape").exists()


def test_download_uncompressed_writes_file(tmp_path: Path) -> None:
    dest = tmp_path / "bin" / "tool"
    dest.parent.mkdir()

    with _host(lambda request: httpx.Response(200, content=b"raw")) as host:
        host.download_file("https://downloads.test/tool", dest, DownloadedFileType.UNCOMPRESSED)

    assert dest.read_bytes() == b"raw"
    assert [p.name for p in dest.parent.iterdir()] == ["tool"]


def test_download_gzip_decompresses_single_file(tmp_path: Path) -> None:
    dest = tmp_path / "bin" / "tool"
    payload = gzip.compress(b"decompressed binary")

    with _host(lambda request: httpx.Response(200, content=payload)) as host:
        host.download_file("https://downloads.test/tool.gz", dest, DownloadedFileType.GZIP)

    assert dest.read_bytes() == b"decompressed binary"
    assert [p.name for p in dest.parent.iterdir()] == ["tool"]


def test_download_gzip_reports_corrupt_payload(tmp_path: Path) -> None:
    dest = tmp_path / "tool"

    with _host(lambda request: httpx.Response(200, content=b"plain bytes")) as host:
        with pytest.raises(HostError, match="failed to extract gzip archive"):
            host.download_file("https://downloads.test/tool.gz", dest, DownloadedFileType.GZIP)


def test_download_reports_http_failure(tmp_path: Path) -> None:
    dest = tmp_path / "out"

    with _host(lambda request: httpx.Response(404)) as host:
        with pytest.raises(HostError, match="failed to download https://downloads.test/missing"):
            host.download_file("https://downloads.test/missing", dest, DownloadedFileType.GZIP_TAR)

    assert list(tmp_path.iterdir()) == []


def test_download_reports_corrupt_archive(tmp_path: Path) -> None:
    dest = tmp_path / "out"

    with _host(lambda request: httpx.Response(200, content=b"not a tarball")) as host:
        with pytest.raises(HostError, match="failed to extract gzip_tar archive"):
            host.download_file("https://downloads.test/a.tar.gz", dest, DownloadedFileType.GZIP_TAR)

    assert [p.name for p in tmp_path.iterdir()] == ["out"]


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_make_file_executable_sets_execute_bits(tmp_path: Path) -> None:
    binary = tmp_path / "crates-lsp"
    binary.write_bytes(b"binary")
    binary.chmod(0o644)

    NativeHost().make_file_executable(binary)

    assert binary.stat().st_mode & 0o777 == 0o755


def test_make_file_executable_reports_missing_file(tmp_path: Path) -> None:
    if os.name == "nt":
        pytest.skip("no-op on Windows")
    with pytest.raises(HostError, match="failed to make"):
        NativeHost().make_file_executable(tmp_path / "missing")


def test_status_is_forwarded_to_callback() -> None:
    seen = []
    host = NativeHost(status_callback=lambda server, status, message: seen.append((server, status, message)))

    host.set_language_server_installation_status("crates-lsp", InstallationStatus.DOWNLOADING)
    host.set_language_server_installation_status("crates-lsp", InstallationStatus.FAILED, "boom")

    assert seen == [
        ("crates-lsp", InstallationStatus.DOWNLOADING, None),
        ("crates-lsp", InstallationStatus.FAILED, "boom"),
    ]


def test_status_callback_errors_are_not_raised() -> None:
    def callback(server, status, message):
        raise RuntimeError("sink closed")

    host = NativeHost(status_callback=callback)

    host.set_language_server_installation_status("crates-lsp", InstallationStatus.CHECKING_FOR_UPDATE)
