"""Domain event primitives shared by every module."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Type
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable).

    Subclasses register themselves by class name so events stored in the
    outbox can be rebuilt with :func:`event_from_payload`.
    """

    registry: ClassVar[Dict[str, Type[DomainEvent]]] = {}

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        DomainEvent.registry[cls.__name__] = cls

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)


def event_from_payload(event_type: str, payload: Dict[str, Any]) -> Optional[DomainEvent]:
    """Rebuild a registered event from its JSON outbox payload.

    Returns ``None`` when ``event_type`` is not a known event class.
    """
    event_class = DomainEvent.registry.get(event_type)
    if event_class is None:
        return None

    kwargs: Dict[str, Any] = {}
    for f in fields(event_class):
        if not f.init or f.name not in payload:
            continue
        value = payload[f.name]
        if f.name in ("aggregate_id", "event_id"):
            value = UUID(str(value))
        elif f.name == "occurred_on":
            value = datetime.fromisoformat(value)
        kwargs[f.name] = value
    return event_class(**kwargs)


class DomainEventMixin:
    """Mixin for aggregate roots that collect domain events in memory."""

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def clear_domain_events(self) -> None:
        if hasattr(self, "_domain_events"):
            self._domain_events.clear()

    @property
    def domain_events(self) -> list[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return list(self._domain_events)
