"""Heartbeat status transitions: retry/debounce policy and beat importance."""

from dataclasses import dataclass
from typing import Protocol

from pulseboard.schemas.status import Status


class PreviousRecord(Protocol):
    status: str
    retries: int


@dataclass(frozen=True)
class Transition:
    status: Status
    retries: int


def flip_status(signal: Status) -> Status:
    if signal == Status.up:
        return Status.down
    if signal == Status.down:
        return Status.up
    return signal


def next_status(
    raw_signal: Status,
    previous: PreviousRecord | None,
    retry_budget: int,
    is_inverted: bool = False,
) -> Transition:
    """Derive the next status from a raw up/down signal and the previous record.

    PENDING is the provisional state while consecutive failures are still inside
    the retry budget. Settled statuses (UP, DOWN) always carry ``retries=0``.
    """
    signal = flip_status(raw_signal) if is_inverted else raw_signal
    budget = max(retry_budget, 0)

    if previous is None:
        if signal == Status.down and budget > 0:
            return Transition(Status.pending, 1)
        return Transition(signal, 0)

    prev_status = Status(previous.status)
    prev_retries = previous.retries or 0

    if prev_status == Status.up and signal == Status.down:
        if budget > 0 and prev_retries < budget:
            return Transition(Status.pending, prev_retries + 1)
        return Transition(Status.down, 0)

    if prev_status == Status.pending and signal == Status.down and prev_retries < budget:
        return Transition(Status.pending, prev_retries + 1)

    return Transition(signal, 0)


# (previous, current) pairs worth recording as important; X -> X never is.
_IMPORTANT_BEATS = {
    (Status.up, Status.down),
    (Status.pending, Status.down),
    (Status.down, Status.up),
    (Status.maintenance, Status.up),
    (Status.maintenance, Status.down),
    (Status.down, Status.maintenance),
    (Status.up, Status.maintenance),
}

_NOTIFY_BEATS = {
    (Status.up, Status.down),
    (Status.pending, Status.down),
    (Status.down, Status.up),
    (Status.maintenance, Status.down),
}


def is_important_beat(is_first: bool, previous_status: str | None, status: str) -> bool:
    """True when the beat marks a change worth showing in the event timeline."""
    if is_first or previous_status is None:
        return True
    return (Status(previous_status), Status(status)) in _IMPORTANT_BEATS


def is_important_for_notification(is_first: bool, previous_status: str | None, status: str) -> bool:
    """True when the beat should be handed to the notification dispatcher."""
    if is_first or previous_status is None:
        return True
    return (Status(previous_status), Status(status)) in _NOTIFY_BEATS
