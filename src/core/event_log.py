"""
EventLog — notification boundary

Принимает записи событий только после commit операции. Каждая запись
валидируется против JSON Schema контракта до публикации, поэтому внешние
индексаторы получают только записи фиксированной схемы.
"""

import logging
from typing import Callable, Iterable, List

from src.core.contracts import IssuanceEventValidator
from src.core.domain.events import EventType, IssuanceEvent

logger = logging.getLogger(__name__)

EventSubscriber = Callable[[IssuanceEvent], None]


class EventLog:
    """In-memory журнал событий с подписчиками."""

    def __init__(self):
        self._validator = IssuanceEventValidator()
        self._events: List[IssuanceEvent] = []
        self._subscribers: List[EventSubscriber] = []

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self._subscribers.append(subscriber)

    def validate(self, events: Iterable[IssuanceEvent]) -> None:
        """
        Raises:
            jsonschema.ValidationError: Если запись не соответствует схеме
        """
        self._validator.validate_batch([event.to_record() for event in events])

    def publish(self, events: Iterable[IssuanceEvent]) -> None:
        """
        Публикация пачки событий одной операции.

        Сначала валидируется вся пачка, затем события добавляются в журнал
        и рассылаются подписчикам.

        Raises:
            jsonschema.ValidationError: Если запись не соответствует схеме
        """
        batch = list(events)
        self.validate(batch)

        for event in batch:
            self._events.append(event)
            logger.debug("event %s actor=%s amount=%d", event.event_type.value, event.primary_actor, event.amount)
            for subscriber in self._subscribers:
                subscriber(event)

    @property
    def events(self) -> List[IssuanceEvent]:
        return list(self._events)

    def of_type(self, event_type: EventType) -> List[IssuanceEvent]:
        return [event for event in self._events if event.event_type == event_type]

    def last(self) -> IssuanceEvent:
        if not self._events:
            raise IndexError("EventLog is empty")
        return self._events[-1]

    def __len__(self) -> int:
        return len(self._events)
