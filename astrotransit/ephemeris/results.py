"""Tagged success/failure values returned by position and horizon providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

__all__ = ["ProviderFailure", "ProviderResult"]

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderFailure:
    """Describe why a provider could not answer a request at ``jd``."""

    provider: str
    call: str
    message: str
    jd: float | None = None
    error_code: str = "provider_error"

    def describe(self) -> str:
        where = f" at jd={self.jd:.6f}" if self.jd is not None else ""
        return f"{self.provider}.{self.call}{where}: {self.message}"


@dataclass(frozen=True)
class ProviderResult(Generic[T]):
    """Either a ``value`` or an ``error``, never both.

    Providers return these instead of raising so that a failed sample can be
    skipped by the caller without an exception travelling through the
    sampling loop.
    """

    value: T | None = None
    error: ProviderFailure | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("ProviderResult requires exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ProviderResult[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        provider: str,
        call: str,
        message: str,
        *,
        jd: float | None = None,
        error_code: str = "provider_error",
    ) -> "ProviderResult[T]":
        return cls(
            error=ProviderFailure(
                provider=provider,
                call=call,
                message=message,
                jd=jd,
                error_code=error_code,
            )
        )

    def unwrap(self) -> T:
        """Return the value or raise :class:`LookupError` describing the failure."""

        if self.error is not None:
            raise LookupError(self.error.describe())
        return self.value  # type: ignore[return-value]
