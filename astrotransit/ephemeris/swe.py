"""Deferred access to the ``swisseph`` extension module.

Importing astrotransit never loads pyswisseph; the first attribute looked up
on :data:`swe` does. Pure-math projectors and synthetic test providers can
therefore run in environments where the wheel is not installed.
"""

from __future__ import annotations

import importlib
import importlib.util
from types import ModuleType

__all__ = ["has_swe", "require_swe", "reset_swe", "swe", "swe_version"]

_MODULE_NAME = "swisseph"


class _LazySwe:
    __slots__ = ("_module",)

    def __init__(self) -> None:
        self._module: ModuleType | None = None

    def load(self) -> ModuleType:
        if self._module is None:
            try:
                self._module = importlib.import_module(_MODULE_NAME)
            except ImportError as exc:
                raise RuntimeError(
                    "pyswisseph is required for Swiss Ephemeris providers; install the "
                    "'pyswisseph' distribution or use SphericalHorizonProjector."
                ) from exc
        return self._module

    @property
    def loaded(self) -> bool:
        return self._module is not None

    def clear(self) -> None:
        self._module = None

    def __getattr__(self, name: str):
        return getattr(self.load(), name)

    def __repr__(self) -> str:
        state = "loaded" if self._module is not None else "deferred"
        return f"<swisseph proxy ({state})>"


swe = _LazySwe()


def require_swe() -> ModuleType:
    """Return the imported ``swisseph`` module, raising ``RuntimeError`` if absent."""

    return swe.load()


def reset_swe() -> None:
    """Drop the cached module so the next lookup imports it again."""

    swe.clear()


def has_swe() -> bool:
    if swe.loaded:
        return True
    return importlib.util.find_spec(_MODULE_NAME) is not None


def swe_version() -> str | None:
    """Version string reported by pyswisseph, or ``None`` when unavailable."""

    if not has_swe():
        return None
    return str(getattr(require_swe(), "version", "unknown"))
