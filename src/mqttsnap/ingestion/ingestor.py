"""Message ingestor: the single writer of the topic store."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable

from mqttsnap.ingestion.classify import classify
from mqttsnap.ingestion.sink import ConsoleSink, MessageSink
from mqttsnap.models.message import InboundMessage
from mqttsnap.state.store import TopicStore

_logger = logging.getLogger(__name__)


class MessageIngestor:
    """Drain an inbound message stream into a :class:`TopicStore`.

    Messages are handled strictly one at a time in arrival order: mirror to
    the sink, classify, upsert. A ``None`` item is the stream's "no message"
    signal (the broker connection dropped); it is logged and skipped.

    Sink failures propagate and end :meth:`run`; they are not retried.
    """

    def __init__(self, store: TopicStore, sink: MessageSink | None = None) -> None:
        self._store = store
        self._sink: MessageSink = sink if sink is not None else ConsoleSink()
        self._processed = 0

    @property
    def messages_processed(self) -> int:
        return self._processed

    async def handle(self, message: InboundMessage) -> None:
        """Mirror, classify and store one message."""
        await self._sink.write(message)
        value = classify(message.payload)
        await self._store.upsert(message.topic, value)
        self._processed += 1
        _logger.debug("Stored topic=%s kind=%s", message.topic, value.kind)

    async def run(self, stream: AsyncIterable[InboundMessage | None]) -> None:
        """Consume *stream* until it is exhausted."""
        try:
            async for item in stream:
                if item is None:
                    _logger.warning("No message from the stream.")
                    continue
                await self.handle(item)
        finally:
            await self._sink.close()
        _logger.info("Message stream ended after %d messages", self._processed)
