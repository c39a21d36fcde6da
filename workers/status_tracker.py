"""Per-session tracker for in-flight async operations.

Each load/save/generate call takes a Ticket for its operation kind. Starting a
newer call of the same kind cancels the older ticket, so a late completion can
tell it is stale and discard its result. Errors surface as dismissible banners
that expire after ERROR_BANNER_TTL_SECONDS.
"""

import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from config import ERROR_BANNER_TTL_SECONDS


class CancellationToken:
    """Cooperative cancel flag checked by an operation after each await."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class Ticket:
    kind: str
    generation: int
    token: CancellationToken = field(default_factory=CancellationToken)


@dataclass
class Banner:
    message: str
    expires_at: float


class StatusTracker:
    """Generation counters, in-flight counts and error banners per operation kind."""

    def __init__(self, ttl: float = ERROR_BANNER_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._counter = itertools.count(1)
        self._latest: Dict[str, Ticket] = {}
        self._in_flight: Dict[str, int] = {}
        self._errors: Dict[str, Banner] = {}

    # ── Tickets ─────────────────────────────────────────────────────────
    def begin(self, kind: str) -> Ticket:
        """Issue a ticket; any older ticket of the same kind becomes stale."""
        previous = self._latest.get(kind)
        if previous is not None:
            previous.token.cancel()
        ticket = Ticket(kind=kind, generation=next(self._counter))
        self._latest[kind] = ticket
        self._in_flight[kind] = self._in_flight.get(kind, 0) + 1
        return ticket

    def is_current(self, ticket: Ticket) -> bool:
        latest = self._latest.get(ticket.kind)
        return (
            not ticket.token.cancelled
            and latest is not None
            and latest.generation == ticket.generation
        )

    def finish(self, ticket: Ticket) -> bool:
        """Mark one call finished; returns whether any call of its kind is still running."""
        remaining = max(self._in_flight.get(ticket.kind, 0) - 1, 0)
        if remaining:
            self._in_flight[ticket.kind] = remaining
        else:
            self._in_flight.pop(ticket.kind, None)
        return bool(remaining)

    def processing_kinds(self) -> list[str]:
        return sorted(self._in_flight)

    def cancel_all(self) -> None:
        """Invalidate every outstanding ticket (module switch, logout, teardown)."""
        for ticket in self._latest.values():
            ticket.token.cancel()

    # ── Error banners ───────────────────────────────────────────────────
    def set_error(self, kind: str, message: str) -> None:
        self._errors[kind] = Banner(message=message, expires_at=self._clock() + self._ttl)

    def error(self, kind: str) -> Optional[str]:
        banner = self._errors.get(kind)
        if banner is None:
            return None
        if self._clock() >= banner.expires_at:
            del self._errors[kind]
            return None
        return banner.message

    def errors(self) -> Dict[str, str]:
        """All live banners; expired ones are dropped on read."""
        live = {}
        for kind in list(self._errors):
            message = self.error(kind)
            if message is not None:
                live[kind] = message
        return live

    def dismiss_error(self, kind: str) -> None:
        self._errors.pop(kind, None)

    def reset(self) -> None:
        self.cancel_all()
        self._latest.clear()
        self._in_flight.clear()
        self._errors.clear()
