"""crates-lsp extension.

Downloads, caches and launches the crates-lsp language server for a host
editor runtime.
"""

__version__ = "0.1.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import module components."""
    if name in ("PinnedToolResolver", "ToolIdentity", "ResolveError", "CRATES_LSP"):
        from . import resolver
        return getattr(resolver, name)
    if name == "CratesLspExtension":
        from .extension import CratesLspExtension
        return CratesLspExtension
    if name == "NativeHost":
        from .host.native import NativeHost
        return NativeHost
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "CRATES_LSP",
    "CratesLspExtension",
    "NativeHost",
    "PinnedToolResolver",
    "ResolveError",
    "ToolIdentity",
]
