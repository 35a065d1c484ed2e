"""Public package surface for promptor.

Exports ``Aggregator`` for programmatic use and ``main`` for CLI invocation.
Most implementation lives in submodules under ``promptor``.
"""

from __future__ import annotations

__version__ = "0.1.0"


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


def __getattr__(name: str):
    if name == "Aggregator":
        from .aggregator import Aggregator

        return Aggregator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["Aggregator", "main", "__version__"]
