"""Event store: append-only lifecycle log.

Learn: Every state change a service makes (tenant registered, key created,
customer synced, ...) is appended here inside the same transaction as the
change itself. Nothing updates or deletes events.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.models import Event
from tenantgate.repositories.base import Store


class EventStore:
    """Append-only event store bound to one session."""

    def __init__(self, session: AsyncSession):
        self.rows = Store(session, Event)

    async def append(
        self,
        stream_id: str,
        event_type: str,
        data: dict,
        metadata: dict | None = None,
    ) -> Event:
        """Append an event to a stream. Returns the created event."""
        event = Event(
            stream_id=stream_id,
            type=event_type,
            data=data,
            meta=metadata or {},
        )
        return await self.rows.add(event)

    async def read_stream(
        self,
        stream_id: str,
        after_id: int = 0,
        limit: int = 100,
    ) -> list[Event]:
        """Read events for one stream, optionally after a given position."""
        return await self.rows.find_all(
            Event.stream_id == stream_id, Event.id > after_id, limit=limit
        )

    async def read_all(
        self,
        after_id: int = 0,
        event_types: list[str] | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Read events across all streams."""
        criteria = [Event.id > after_id]
        if event_types:
            criteria.append(Event.type.in_(event_types))
        return await self.rows.find_all(*criteria, limit=limit)
