"""Audit emitter — stamps and appends events on behalf of a component.

Components emit only after their state change has committed. A failed
append (disk full, duplicate ID) cannot un-move value that has already
moved, so the emitter logs the failure, flips its degraded flag for
operator attention, and lets the operation succeed. The state is right;
the log is stale and needs operator intervention.

The ledger and the offer engine share one emitter so that transfers made
on behalf of an escrow transition carry a "cause" field naming that
transition. Indexers use it to tell escrow movements from user transfers,
and replay uses it to avoid applying them twice.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from ecoflow.persistence.event_log import EventKind, EventLog, EventRecord

logger = logging.getLogger(__name__)


class AuditEmitter:
    """Appends events to an optional EventLog, stamped with block height."""

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._event_log = event_log
        self._clock = clock
        self._causes: list[str] = []
        self.degraded = False

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    def attach(self, event_log: Optional[EventLog]) -> None:
        """Swap the destination log (used after a replay rebuild)."""
        self._event_log = event_log

    @contextmanager
    def caused_by(self, cause: EventKind) -> Iterator[None]:
        """Tag events emitted inside the block with the enclosing transition."""
        self._causes.append(cause.value)
        try:
            yield
        finally:
            self._causes.pop()

    def emit(
        self,
        kind: EventKind,
        actor_id: str,
        **payload: Any,
    ) -> Optional[EventRecord]:
        if self._clock is not None:
            payload.setdefault("height", self._clock())
        if self._causes:
            payload.setdefault("cause", self._causes[-1])

        if self._event_log is None:
            return None
        try:
            return self._event_log.record(kind, actor_id, payload)
        except (ValueError, OSError) as e:
            self.degraded = True
            logger.error(
                "Event log failure after commit (%s by %s): %s",
                kind.value, actor_id, e,
            )
            return None
