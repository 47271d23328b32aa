from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Generic, List, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Disposable:
    """Releases a subscription or resource once; later calls are no-ops."""

    def __init__(self, on_dispose: Callable[[], None] = lambda: None):
        self._on_dispose = on_dispose
        self.disposed = False

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._on_dispose()


class EventEmitter(Generic[T]):
    """
    Synchronous publish/subscribe for one kind of event.

    `fire` dispatches to a snapshot of the listeners, so listeners that subscribe
    or dispose while an event is being delivered only affect later events. A
    listener that was disposed earlier in the same dispatch is skipped.
    """

    def __init__(self, name: str = "event"):
        self.name = name
        self._listeners: List[Callable[[T], Any]] = []

    def subscribe(self, listener: Callable[[T], Any]) -> Disposable:
        self._listeners.append(listener)

        def _remove():
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return Disposable(_remove)

    def fire(self, event: T) -> None:
        for listener in list(self._listeners):
            if listener not in self._listeners:
                continue
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Listener for {self.name} failed: {e}", exc_info=True)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


@dataclass(frozen=True)
class DocumentChangeEvent:
    document: Any


@dataclass(frozen=True)
class DocumentWillSaveEvent:
    document: Any


@dataclass(frozen=True)
class ConfigurationChangeEvent:
    """Carries the changed keys (without section prefix) and the new values."""

    section: str
    changed: FrozenSet[str]
    values: Dict[str, Any] = field(default_factory=dict)

    def affects_configuration(self, key: str) -> bool:
        prefix = f"{self.section}."
        if key.startswith(prefix):
            key = key[len(prefix) :]
        if key == self.section:
            return bool(self.changed)
        return key in self.changed
