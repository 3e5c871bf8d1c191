"""Tooling for tuning catdist on the running interpreter.

``sampling_benchmark`` measures the category count where batch sampling
overtakes linear scans, the value behind ``SamplingConfig.crossover``.
Submodules are imported on first attribute access.
"""

from __future__ import annotations

import importlib
from types import ModuleType

__all__ = ["sampling_benchmark"]


def __getattr__(name: str) -> ModuleType:
    if name in __all__:
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(__all__) | set(globals()))
