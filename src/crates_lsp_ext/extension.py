"""Editor extension entry point for the crates-lsp language server."""

from __future__ import annotations

from typing import Any, Optional

from .core.config import ExtensionConfig
from .host.api import Command, GithubReleaseOptions, Host, InstallationStatus
from .resolver import PinnedToolResolver, ResolveError, ToolIdentity
from .util.error import format_error
from .util.log import Log

log = Log.create({"service": "extension"})

LANGUAGE_SERVER_ID = "crates-lsp"


class CratesLspExtension:
    """Provides the launch command for crates-lsp to the host.

    One instance lives as long as the host keeps the extension loaded, so
    the resolver memoises the binary path across calls.
    """

    def __init__(self, host: Host, config: Optional[ExtensionConfig] = None) -> None:
        self.host = host
        self.config = config or ExtensionConfig()
        tool = ToolIdentity(
            repository=self.config.repository,
            name=self.config.tool_name,
            options=GithubReleaseOptions(require_assets=True, pre_release=self.config.pre_release),
        )
        self.resolver = PinnedToolResolver(host, tool, work_dir=self.config.work_dir)

    def language_server_binary_path(self, language_server_id: str = LANGUAGE_SERVER_ID) -> str:
        return self.resolver.resolve(language_server_id)

    def language_server_command(
        self,
        language_server_id: str = LANGUAGE_SERVER_ID,
        worktree: Any = None,
    ) -> Command:
        """Build the command the host runs to start the language server."""
        del worktree
        try:
            path = self.language_server_binary_path(language_server_id)
        except ResolveError as error:
            message = format_error(error) or str(error)
            log.error("failed to resolve language server", {"server": language_server_id, "error": error})
            self.host.set_language_server_installation_status(
                language_server_id,
                InstallationStatus.FAILED,
                message,
            )
            raise

        return Command(
            command=path,
            args=list(self.config.args),
            env=dict(self.config.env),
        )
