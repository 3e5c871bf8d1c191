"""Adaptive categorical distributions for non-stationary event streams."""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import TYPE_CHECKING, Any

from .distribution import (
    CategoricalDistribution,
    DistributionConfig,
    DistributionError,
    SamplingConfig,
)

__version__ = "3.0.0"

_LAZY_SUBMODULES = ("cli", "tools")

__all__ = [
    "CategoricalDistribution",
    "DistributionConfig",
    "DistributionError",
    "SamplingConfig",
    "__version__",
    "cli",
    "tools",
]


def __getattr__(name: str) -> Any:
    """Lazily import the command line and tooling packages."""

    if name in _LAZY_SUBMODULES:
        module: ModuleType = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if TYPE_CHECKING:  # pragma: no cover - imported for static analyzers
    from . import cli, tools  # noqa: F401
