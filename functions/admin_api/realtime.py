"""
Change feed used to notify admin clients that a table changed.

Supports an in-memory fallback for tests/local runs and a Redis stream
implementation for production. Clients poll with the cursor returned by the
previous read and refresh whatever tables show up in the events.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from itertools import islice
from typing import Iterable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.types import ChangeType
from shared.utils import utcnow

START_CURSOR = "0"


@dataclass
class ChangeEvent:
    table: str
    event: ChangeType
    record_id: Optional[str]
    at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "table": self.table,
            "event": self.event.value,
            "record_id": self.record_id,
            "at": self.at.isoformat(),
        }

    def to_fields(self) -> dict:
        return {
            "table": self.table,
            "event": self.event.value,
            "record_id": self.record_id or "",
            "at": self.at.isoformat(),
        }

    @classmethod
    def from_fields(cls, fields: dict) -> "ChangeEvent":
        decoded = {
            (k.decode("utf-8") if isinstance(k, bytes) else k): (
                v.decode("utf-8") if isinstance(v, bytes) else v
            )
            for k, v in fields.items()
        }
        return cls(
            table=decoded["table"],
            event=ChangeType(decoded["event"]),
            record_id=decoded.get("record_id") or None,
            at=datetime.fromisoformat(decoded["at"]),
        )


class ChangeFeed(Protocol):
    """Minimal feed interface: append events, read everything after a cursor."""

    def publish(self, event: ChangeEvent) -> None:
        ...

    def read_since(
        self,
        cursor: str = START_CURSOR,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> tuple[list[ChangeEvent], str]:
        ...


@dataclass
class InMemoryChangeFeed:
    """
    Bounded buffer of events; the cursor is the number of events ever published.

    Like the Redis stream, the oldest events are dropped past `max_length`.
    """

    max_length: int = 10_000

    def __post_init__(self):
        self.events: deque[ChangeEvent] = deque(maxlen=self.max_length)
        self.dropped = 0

    def reset(self) -> None:
        self.events.clear()
        self.dropped = 0

    def publish(self, event: ChangeEvent) -> None:
        if len(self.events) == self.max_length:
            self.dropped += 1
        self.events.append(event)

    def read_since(
        self,
        cursor: str = START_CURSOR,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> tuple[list[ChangeEvent], str]:
        try:
            start = max(int(cursor or 0), 0)
        except ValueError:
            start = 0
        index = max(start - self.dropped, 0)
        batch = list(islice(self.events, index, index + limit))
        next_cursor = str(self.dropped + index + len(batch))
        wanted = set(tables) if tables else None
        if wanted is not None:
            batch = [e for e in batch if e.table in wanted]
        return batch, next_cursor


@dataclass
class RedisChangeFeed:
    """Redis stream backed feed. Cursors are stream entry ids."""

    url: str
    stream_key: str = "learnverse:changes"
    max_length: int = 10_000

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def publish(self, event: ChangeEvent) -> None:
        try:
            self.client.xadd(
                self.stream_key,
                event.to_fields(),
                maxlen=self.max_length,
                approximate=True,
            )
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and retry once.
            self.client = redis.Redis.from_url(self.url)
            self.client.xadd(
                self.stream_key,
                event.to_fields(),
                maxlen=self.max_length,
                approximate=True,
            )

    def read_since(
        self,
        cursor: str = START_CURSOR,
        tables: Optional[Iterable[str]] = None,
        limit: int = 100,
    ) -> tuple[list[ChangeEvent], str]:
        cursor = cursor or START_CURSOR
        try:
            result = self.client.xread({self.stream_key: cursor}, count=limit)
        except redis_exceptions.ConnectionError:
            self.client = redis.Redis.from_url(self.url)
            return [], cursor
        events: list[ChangeEvent] = []
        next_cursor = cursor
        wanted = set(tables) if tables else None
        for _, entries in result or []:
            for entry_id, fields in entries:
                next_cursor = (
                    entry_id.decode("utf-8") if isinstance(entry_id, bytes) else entry_id
                )
                event = ChangeEvent.from_fields(fields)
                if wanted is None or event.table in wanted:
                    events.append(event)
        return events, next_cursor
