"""Command line entry points for :mod:`catdist`."""

from __future__ import annotations

import importlib
from typing import Any

_LOCAL_SUBMODULES = {
    "catdist_cli": "catdist.cli.catdist_cli",
}


def __getattr__(name: str) -> Any:  # pragma: no cover - simple forwarding
    if name in _LOCAL_SUBMODULES:
        return importlib.import_module(_LOCAL_SUBMODULES[name])
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover - reflective helper
    return sorted(set(_LOCAL_SUBMODULES) | set(globals()))


__all__ = sorted(_LOCAL_SUBMODULES)
