"""Event bus for translation and job observability.

A simple synchronous event bus that carries domain events (phase progress,
configuration warnings, job lifecycle) from the runner to whoever
subscribed: formatters, monitoring hooks, or tests asserting on warnings.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations.

    Allows both EventBus and NullEventBus to satisfy the interface
    without inheritance, preventing accidental substitution bugs.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type."""
        ...

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Remove a handler subscribed to an event type."""
        ...

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers."""
        ...


class EventBus:
    """Simple synchronous event bus.

    Events are dispatched synchronously to all subscribers. Handler
    exceptions propagate to the caller.

    Example:
        bus = EventBus()
        bus.subscribe(ConfigurationWarning, lambda e: print(e.message))
        runner = PipelineRunner(options, event_bus=bus)
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance
        """
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Remove a previously subscribed handler.

        Raises:
            ValueError: If the handler was never subscribed to event_type
        """
        handlers = self._subscribers.get(event_type, [])
        handlers.remove(handler)

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers.

        Handlers subscribed to the event's class or any of its base classes
        are called synchronously, most specific class first, in subscription
        order. Events with no subscribers are silently ignored.
        """
        for event_type in type(event).__mro__:
            for handler in list(self._subscribers.get(event_type, ())):
                handler(event)


class NullEventBus:
    """No-op event bus for library use where nobody listens.

    Does NOT inherit from EventBus: subscribing here is a no-op, so a caller
    expecting callbacks must pass a real EventBus.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """No-op subscription - handler will never be called."""
        pass

    def unsubscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """No-op - nothing was ever subscribed."""
        pass

    def emit(self, event: T) -> None:
        """No-op emission - no handlers to call."""
        pass
