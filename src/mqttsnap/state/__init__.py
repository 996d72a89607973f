"""State/store layer.

The topic store is the single shared mutable resource: the ingestor writes
to it, snapshot requests read from it.
"""

from mqttsnap.state.store import TopicStore

__all__ = ["TopicStore"]
