"""CLI entry point for the crates-lsp extension.

Resolves the language server outside an editor, which is handy for
pre-installing it or for debugging the download.
"""

import json
from typing import Optional

import typer
from rich.console import Console

from .. import __version__

app = typer.Typer(
    name="crates-lsp-ext",
    help="Install and locate the crates-lsp language server",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        console.print(f"crates-lsp-extension {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Minimum log level (debug, info, warn, error)",
    ),
    print_logs: bool = typer.Option(
        False,
        "--print-logs",
        help="Print logs to stderr instead of the log file",
    ),
):
    """Install and locate the crates-lsp language server."""
    from ..core.config import ConfigError, ConfigManager
    from ..core.global_paths import GlobalPath
    from ..util.log import Log, LogFormat, LogLevel

    GlobalPath.initialize()
    try:
        logging = ConfigManager.get().logging
    except ConfigError as error:
        err_console.print(f"[red]Error:[/red] {error}")
        raise typer.Exit(1)

    try:
        level = LogLevel.parse(log_level or logging.level)
    except ValueError as error:
        err_console.print(f"[red]Error:[/red] {error}")
        raise typer.Exit(1)

    console_sink = print_logs or bool(logging.console)
    file_sink = logging.file if logging.file is not None else not print_logs
    Log.configure(
        level=level,
        format=LogFormat.parse(logging.format),
        console=console_sink,
        file=file_sink,
        keep_files=logging.keep_files,
    )
    ctx.call_on_close(Log.close)


def _build_extension():
    from ..core.config import ConfigManager
    from ..extension import CratesLspExtension
    from ..host.native import NativeHost

    config = ConfigManager.get()
    host = NativeHost(
        api_url=config.github.api_url,
        token=config.github.token,
        timeout=config.github.timeout,
        download_timeout=config.github.download_timeout,
    )
    return host, CratesLspExtension(host, config)


@app.command()
def path():
    """Resolve the language server and print its path."""
    from ..resolver import ResolveError
    from ..util.error import format_error

    host, extension = _build_extension()
    with host:
        try:
            binary = extension.language_server_binary_path()
        except ResolveError as error:
            err_console.print(f"[red]Error:[/red] {format_error(error)}")
            raise typer.Exit(1)
    typer.echo(binary)


@app.command()
def command(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the command as JSON",
    ),
):
    """Resolve the language server and print its launch command."""
    from ..resolver import ResolveError
    from ..util.error import format_error

    host, extension = _build_extension()
    with host:
        try:
            cmd = extension.language_server_command()
        except ResolveError as error:
            err_console.print(f"[red]Error:[/red] {format_error(error)}")
            raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(cmd.model_dump(), indent=2))
        return

    env = " ".join(f"{key}={value}" for key, value in sorted(cmd.env.items()))
    typer.echo(" ".join(part for part in [env, cmd.command, *cmd.args] if part))


@app.command()
def config(
    show: bool = typer.Option(
        False,
        "--show",
        help="Show current configuration",
    ),
    path: bool = typer.Option(
        False,
        "--path",
        help="Show configuration file path",
    ),
):
    """Show configuration."""
    from ..core.config import ConfigManager

    if path:
        typer.echo(ConfigManager.path())
        return

    if show:
        data = ConfigManager.get().model_dump(mode="json", exclude={"schema_"})
        if data["github"].get("token"):
            data["github"]["token"] = "***"
        typer.echo(json.dumps(data, indent=2))
        return

    console.print("Use --show to display configuration or --path to show config path")


if __name__ == "__main__":
    app()
