"""Event sink that writes domain events to the log and counts them.

The counters are the client's metrics surface: attempts, successes, retries,
exhaustions and credential refreshes per session.
"""

import logging
from collections import Counter
from dataclasses import asdict
from typing import Dict, List, Optional

from compassone.domain.events.api_events import (
    ApiCallDeferred,
    ApiCallFailed,
    CredentialInvalidated,
    DomainEvent,
    RetriesExhausted,
    RetryScheduled,
)
from compassone.domain.interfaces.event_sink import EventSink
from compassone.domain.redaction import redact

logger = logging.getLogger(__name__)

_WARNING_EVENTS = (RetryScheduled, ApiCallDeferred, CredentialInvalidated)
_ERROR_EVENTS = (ApiCallFailed, RetriesExhausted)


class LoggingEventSink(EventSink):
    """Logs each event at a level matching its severity and keeps counters."""

    def __init__(self, keep_history: bool = False, history_limit: int = 1000):
        self.counters: Counter = Counter()
        self.keep_history = keep_history
        self.history_limit = history_limit
        self.history: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self.counters[event.name] += 1
        if self.keep_history:
            self.history.append(event)
            if len(self.history) > self.history_limit:
                del self.history[0]

        fields = {k: v for k, v in asdict(event).items() if k != "timestamp"}
        message = redact(f"EVENT {event.name}: {fields}")
        if isinstance(event, _ERROR_EVENTS):
            logger.error(message)
        elif isinstance(event, _WARNING_EVENTS):
            logger.warning(message)
        else:
            logger.debug(message)

    def snapshot(self) -> Dict[str, int]:
        """Copy of the counters, keyed by event name."""
        return dict(self.counters)

    def events(self, name: Optional[str] = None) -> List[DomainEvent]:
        if name is None:
            return list(self.history)
        return [e for e in self.history if e.name == name]
