"""In-memory topic store.

Holds the last classified value per topic. The ingestor is the only
writer; any number of HTTP handlers read snapshots concurrently.
"""

from __future__ import annotations

from mqttsnap.models.value import TopicValue
from mqttsnap.state._rwlock import ReadWriteLock


class TopicStore:
    """Last-write-wins map of topic -> :data:`TopicValue`.

    Entries are never deleted or expired; a topic keeps its value until a
    newer message on the same topic replaces it. Values are immutable, so a
    shallow copy taken under the read lock is a consistent snapshot of every
    entry it contains.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._topics: dict[str, TopicValue] = {}

    def __len__(self) -> int:
        return len(self._topics)

    async def upsert(self, topic: str, value: TopicValue) -> None:
        """Store *value* for *topic*, replacing any previous value."""
        async with self._lock.write():
            self._topics[topic] = value

    async def snapshot(self) -> dict[str, TopicValue]:
        """Return a point-in-time copy of all entries."""
        async with self._lock.read():
            return dict(self._topics)
