"""Actions and plans produced by the planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from kfutil.domain.errors import InternalError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime


class ActionKind(StrEnum):
    ADD = "add"
    REMOVE = "remove"
    NOOP = "noop"


@dataclass(slots=True, frozen=True)
class Action:
    """Decision for one (certificate, store) pair."""

    thumbprint: str
    cert_id: int
    store_id: str
    subject_dn: str = ""
    issuer_dn: str = ""
    store_type: str = ""
    store_path: str = ""
    machine: str = ""
    add: bool = False
    remove: bool = False
    deployed: bool = False
    audit_timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.add and self.remove:
            raise InternalError(
                f"action for {self.thumbprint or self.cert_id} on store {self.store_id} "
                "cannot both add and remove"
            )

    @property
    def kind(self) -> ActionKind:
        if self.add:
            return ActionKind.ADD
        if self.remove:
            return ActionKind.REMOVE
        return ActionKind.NOOP

    @property
    def is_noop(self) -> bool:
        return self.kind is ActionKind.NOOP

    def describe(self) -> str:
        target = f"store {self.store_id} ({self.machine}:{self.store_path})"
        certificate = f"certificate {self.thumbprint} (id {self.cert_id})"
        match self.kind:
            case ActionKind.ADD:
                return f"add {certificate} to {target}"
            case ActionKind.REMOVE:
                return f"remove {certificate} from {target}"
            case ActionKind.NOOP:
                return f"no change for {certificate} on {target}"


@dataclass(slots=True)
class Plan:
    actions: list[Action] = field(default_factory=list)

    def append(self, action: Action) -> None:
        self.actions.append(action)

    def extend(self, actions: Iterable[Action]) -> None:
        self.actions.extend(actions)

    @property
    def pending(self) -> list[Action]:
        return [action for action in self.actions if not action.is_noop]

    @property
    def is_converged(self) -> bool:
        return not self.pending

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)


@dataclass(slots=True, frozen=True)
class AuditRow:
    """One parsed line of an audit file.

    ``cert_id`` is ``-1`` when the file does not carry a usable id.
    """

    line: int
    thumbprint: str
    cert_id: int
    store_id: str
    subject_dn: str = ""
    issuer_dn: str = ""
    store_type: str = ""
    store_path: str = ""
    machine: str = ""
    add: bool = False
    remove: bool = False
    deployed: bool = False
    audit_timestamp: datetime | None = None

    def to_action(self, *, cert_id: int | None = None) -> Action:
        return Action(
            thumbprint=self.thumbprint,
            cert_id=self.cert_id if cert_id is None else cert_id,
            store_id=self.store_id,
            subject_dn=self.subject_dn,
            issuer_dn=self.issuer_dn,
            store_type=self.store_type,
            store_path=self.store_path,
            machine=self.machine,
            add=self.add,
            remove=self.remove,
            deployed=self.deployed,
            audit_timestamp=self.audit_timestamp,
        )
