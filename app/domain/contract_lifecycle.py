"""Contract status state machine.

Every status change a service performs is validated here, against a single
transition table, instead of being re-derived from string comparisons in
each handler.
"""

from __future__ import annotations

from enum import Enum


class ContractStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ContractEvent(str, Enum):
    ACTIVATE = "activate"
    COMPLETE = "complete"
    CANCEL = "cancel"


class SignatoryRole(str, Enum):
    OWNER = "owner"
    STUDENT = "student"


TRANSITIONS: dict[tuple[ContractStatus, ContractEvent], ContractStatus] = {
    (ContractStatus.PENDING, ContractEvent.ACTIVATE): ContractStatus.ACTIVE,
    (ContractStatus.PENDING, ContractEvent.CANCEL): ContractStatus.CANCELLED,
    (ContractStatus.ACTIVE, ContractEvent.COMPLETE): ContractStatus.COMPLETED,
    (ContractStatus.ACTIVE, ContractEvent.CANCEL): ContractStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset({ContractStatus.COMPLETED, ContractStatus.CANCELLED})

# Statuses that hold a property (at most one such contract per property).
OPEN_STATUSES = frozenset({ContractStatus.PENDING, ContractStatus.ACTIVE})


def next_status(
    from_status: ContractStatus | str, event: ContractEvent
) -> ContractStatus | None:
    """Return the status ``event`` leads to from ``from_status``, or None if not permitted."""
    return TRANSITIONS.get((ContractStatus(from_status), event))


def can_transition(
    from_status: ContractStatus | str,
    to_status: ContractStatus | str,
    event: ContractEvent,
) -> bool:
    return next_status(from_status, event) == ContractStatus(to_status)


def is_terminal(status: ContractStatus | str) -> bool:
    return ContractStatus(status) in TERMINAL_STATUSES


def sources_for(event: ContractEvent) -> frozenset[ContractStatus]:
    """Statuses from which ``event`` is permitted. Used to build conditional updates."""
    return frozenset(source for (source, ev) in TRANSITIONS if ev == event)
