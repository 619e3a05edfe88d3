"""Error formatting utilities.

Turns extension errors into the one-line messages shown to the user.
"""

from typing import Any

from ..core.config import ConfigError
from ..host.api import HostError
from ..resolver import ResolveError


def format_error(error: Any) -> str | None:
    """Format known extension errors into user-friendly messages.

    Returns None if the error type is not recognized.
    """
    if isinstance(error, ResolveError):
        return f"crates-lsp could not be started: {error}"
    if isinstance(error, HostError):
        return f"Host error: {error}"
    if isinstance(error, ConfigError):
        return str(error)
    return None
