"""Ports for the CSV artifacts the ROT pipeline reads and writes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path
    from types import TracebackType

    from kfutil.domain.errors import ErrorList
    from kfutil.domain.model import Action, AuditRow, CertificateRef, StoreRow


@runtime_checkable
class ActionSink(Protocol):
    """Receives actions one by one, in order."""

    def write(self, action: Action) -> None: ...

    def flush(self) -> None: ...


class ClosableActionSink(ActionSink, Protocol):
    def close(self) -> None: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


class RotFiles(Protocol):
    def read_stores(self, path: Path) -> list[StoreRow]: ...

    def read_certificates(self, path: Path) -> list[CertificateRef]: ...

    def read_audit(self, path: Path) -> tuple[list[AuditRow], ErrorList]: ...

    def open_audit(self, path: Path) -> ClosableActionSink: ...

    def open_reconciled(self, path: Path, *, reconciled_at: datetime) -> ClosableActionSink: ...


__all__ = ["ActionSink", "ClosableActionSink", "RotFiles"]
