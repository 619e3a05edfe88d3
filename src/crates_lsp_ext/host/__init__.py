"""Host capability contract and implementations."""

from .api import (
    Architecture,
    Command,
    DownloadedFileType,
    GithubRelease,
    GithubReleaseAsset,
    GithubReleaseOptions,
    Host,
    HostError,
    InstallationStatus,
    Os,
)

__all__ = [
    "Architecture",
    "Command",
    "DownloadedFileType",
    "GithubRelease",
    "GithubReleaseAsset",
    "GithubReleaseOptions",
    "Host",
    "HostError",
    "InstallationStatus",
    "Os",
]
