"""Append-only event audit log."""

import logging
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from fleetmon.db.repositories import EventRepository
from fleetmon.db.tables import EventTable
from fleetmon.errors import EventLogError
from fleetmon.models import Event, EventType, ResourceType
from fleetmon.models.event import decode_event_data
from fleetmon.observability.metrics import metrics
from fleetmon.observability.trace import get_trace_id
from fleetmon.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class MonotonicClock:
    """
    Wall clock that never hands out the same instant twice.

    Events recorded faster than the clock resolution get timestamps one
    microsecond apart, so per-resource ordering by timestamp matches the
    order in which events were recorded within a process.
    """

    def __init__(self, source: Callable[[], datetime] = utc_now):
        self._source = source
        self._lock = Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            if self._last is not None and current <= self._last:
                current = self._last + _TICK
            self._last = current
            return current


event_clock = MonotonicClock()


class EventLog:
    """Records and retrieves lifecycle events.

    Events are only ever inserted; nothing in normal operation updates or
    deletes them.
    """

    def __init__(self, events: EventRepository, clock: MonotonicClock | None = None):
        self.events = events
        self.clock = clock or event_clock

    async def record(
        self,
        resource_id: str,
        resource_type: ResourceType,
        event_type: EventType,
        data: BaseModel,
    ) -> Event:
        """
        Append an event stamped with the current time.

        Raises:
            EventLogError: the event could not be stored. The caller decides
                whether to continue or abort its own operation.
        """
        timestamp = self.clock.now()
        try:
            row = await self.events.insert(
                event_id=uuid4(),
                resource_id=resource_id,
                resource_type=resource_type,
                event_type=event_type,
                timestamp=timestamp,
                data=data.model_dump(mode="json"),
                trace_id=get_trace_id(),
            )
        except SQLAlchemyError as e:
            metrics.inc_counter("events.record_failed")
            raise EventLogError(resource_id, event_type.value, e) from e

        metrics.inc_counter("events.recorded")
        logger.debug(f"Recorded {event_type.value} for {resource_type.value} {resource_id}")
        return self._row_to_model(row)

    async def find_in_order(self, resource_id: str) -> list[Event]:
        """All events for a resource, ascending by timestamp then insertion order."""
        rows = await self.events.find_by_resource(resource_id)
        return [self._row_to_model(row) for row in rows]

    def _row_to_model(self, row: EventTable) -> Event:
        resource_type = ResourceType(row.resource_type)
        return Event(
            event_id=row.event_id,
            sequence=row.sequence,
            resource_id=row.resource_id,
            resource_type=resource_type,
            event_type=EventType(row.event_type),
            timestamp=ensure_utc(row.timestamp),
            data=decode_event_data(resource_type, row.data or {}),
        )
