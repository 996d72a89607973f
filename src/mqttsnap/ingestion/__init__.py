"""Ingestion layer.

This package turns inbound broker messages into classified topic values
and writes them into the topic store.
"""

from mqttsnap.ingestion.classify import classify
from mqttsnap.ingestion.ingestor import MessageIngestor
from mqttsnap.ingestion.sink import ConsoleSink, FileSink, MessageSink

__all__ = ["ConsoleSink", "FileSink", "MessageIngestor", "MessageSink", "classify"]
