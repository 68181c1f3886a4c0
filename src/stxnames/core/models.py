"""Core data models for the username ledger and the ingestion pipeline.

This module defines:
- `UsernameRecord`: current ownership of one username (mutable state).
- `TransferRecord` / `ReleaseRecord`: append-only history facts.
- `RecentEvent`: one row of the merged activity feed served by the read API.
- `RegisterEvent` / `TransferEvent` / `ReleaseEvent`: the closed set of
  canonical events produced by the normalizer (`NormalizedEvent`).

Design notes
------------
- Timestamps are whole seconds since the epoch.
- Addresses are stored exactly as decoded (contract suffix already stripped).
- Event kinds are a closed union; consumers dispatch with `match` so that a
  new kind cannot be silently ignored.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar, Literal

from stxnames.constants import RELEASE_FN, REGISTER_FN, TRANSFER_FN


# === Ledger records ===


@dataclass(slots=True, frozen=True)
class UsernameRecord:
    """Active ownership of one username (primary key: `username`)."""

    username: str
    owner: str
    registered_at: int
    tx_id: str
    block_height: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class TransferRecord:
    """One reconciled transfer; never mutated once written."""

    username: str
    from_owner: str
    to_owner: str
    tx_id: str
    block_height: int
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class ReleaseRecord:
    """One reconciled release; never mutated once written."""

    username: str
    previous_owner: str
    tx_id: str
    block_height: int
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


RecentEventType = Literal["registration", "transfer", "release"]


@dataclass(slots=True, frozen=True)
class RecentEvent:
    """Merged activity row (registrations, transfers, releases)."""

    event_type: RecentEventType
    username: str
    event_owner: str
    tx_id: str
    block_height: int
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# === Normalized events ===


class EventKind(str, Enum):
    """The three contract operations the indexer understands."""

    REGISTER = "register"
    TRANSFER = "transfer"
    RELEASE = "release"

    @property
    def function_name(self) -> str:
        return _FUNCTION_NAMES[self]

    @classmethod
    def from_function_name(cls, name: str | None) -> EventKind | None:
        """Map a contract function name to its kind, or None if not ours."""
        for kind, fn in _FUNCTION_NAMES.items():
            if fn == name:
                return kind
        return None


_FUNCTION_NAMES: dict[EventKind, str] = {
    EventKind.REGISTER: REGISTER_FN,
    EventKind.TRANSFER: TRANSFER_FN,
    EventKind.RELEASE: RELEASE_FN,
}

RECOGNIZED_FUNCTIONS: frozenset[str] = frozenset(_FUNCTION_NAMES.values())


@dataclass(slots=True, frozen=True, kw_only=True)
class _BaseEvent:
    tx_id: str
    block_height: int
    timestamp: int  # seconds
    sender: str
    username: str


@dataclass(slots=True, frozen=True, kw_only=True)
class RegisterEvent(_BaseEvent):
    """`sender` registered `username`."""

    kind: ClassVar[EventKind] = EventKind.REGISTER


@dataclass(slots=True, frozen=True, kw_only=True)
class TransferEvent(_BaseEvent):
    """`sender` transferred `username` to `new_owner`."""

    new_owner: str
    kind: ClassVar[EventKind] = EventKind.TRANSFER


@dataclass(slots=True, frozen=True, kw_only=True)
class ReleaseEvent(_BaseEvent):
    """`sender` released `username`."""

    kind: ClassVar[EventKind] = EventKind.RELEASE


NormalizedEvent = RegisterEvent | TransferEvent | ReleaseEvent
