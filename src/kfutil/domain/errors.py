"""Error kinds shared by the ROT pipeline and bulk store operations.

Fatal kinds (``InputError``, ``InternalError``) are raised. Partial failures are
collected into an :class:`ErrorList` and handed back next to each stage result so
callers can still use what was produced.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

E = TypeVar("E", bound="PartialFailure")


class KfutilError(Exception):
    """Base class for every error kind raised or collected by kfutil."""


class InputError(KfutilError):
    """Malformed input: bad CSV, header mismatch or conflicting options."""


class InternalError(KfutilError):
    """A model invariant was violated."""


class PartialFailure(KfutilError):
    """A per-row or per-action failure that must not abort the run."""

    def __init__(self, message: str, *, subject: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.subject = subject

    def __str__(self) -> str:
        if self.subject:
            return f"{self.subject}: {self.message}"
        return self.message


class LookupFailure(PartialFailure):
    """The Platform could not resolve a certificate or store."""


class EligibilityRejection(PartialFailure):
    """A listed store does not look like a root-of-trust store."""


class ApplyFailure(PartialFailure):
    """The Platform rejected an add or remove job."""


class InvalidRow(PartialFailure):
    """A row of an input file could not be used and was skipped."""


class ErrorList:
    """Ordered collection of partial failures."""

    __slots__ = ("_errors",)

    def __init__(self, errors: Iterable[PartialFailure] = ()) -> None:
        self._errors: list[PartialFailure] = list(errors)

    def append(self, error: PartialFailure) -> None:
        self._errors.append(error)

    def extend(self, errors: Iterable[PartialFailure]) -> None:
        self._errors.extend(errors)

    def of_kind(self, kind: type[E]) -> list[E]:
        return [error for error in self._errors if isinstance(error, kind)]

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[PartialFailure]:
        return iter(self._errors)

    def __str__(self) -> str:
        return "\n".join(str(error) for error in self._errors)

    def __repr__(self) -> str:
        return f"ErrorList({self._errors!r})"


__all__ = [
    "ApplyFailure",
    "EligibilityRejection",
    "ErrorList",
    "InputError",
    "InternalError",
    "InvalidRow",
    "KfutilError",
    "LookupFailure",
    "PartialFailure",
]
