"""Interface for the observability sink receiving domain events."""

import abc

from compassone.domain.events.api_events import DomainEvent


class EventSink(abc.ABC):
    """Abstract Base Class for publishing domain events."""

    @abc.abstractmethod
    def publish(self, event: DomainEvent) -> None:
        """Publishes an event. Must not raise."""
        pass


class NullEventSink(EventSink):
    """Discards every event."""

    def publish(self, event: DomainEvent) -> None:
        pass
