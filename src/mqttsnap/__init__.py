"""mqttsnap - serve the last value of every MQTT topic as a JSON snapshot."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mqttsnap")
except PackageNotFoundError:
    __version__ = "0+local"
from mqttsnap.bridge import Bridge, run_bridge
from mqttsnap.config import BridgeConfig
from mqttsnap.exceptions import (
    BridgeConfigError,
    BridgeError,
    BrokerConnectionError,
    BrokerError,
    BrokerSubscriptionError,
    SinkWriteError,
)
from mqttsnap.ingestion import ConsoleSink, FileSink, MessageIngestor, classify
from mqttsnap.models import (
    InboundMessage,
    ObjectArrayValue,
    ObjectValue,
    TextValue,
    TopicValue,
    ValueKind,
)
from mqttsnap.server import create_app
from mqttsnap.state import TopicStore

__all__ = [
    "__version__",
    "Bridge",
    "BridgeConfig",
    "BridgeConfigError",
    "BridgeError",
    "BrokerConnectionError",
    "BrokerError",
    "BrokerSubscriptionError",
    "ConsoleSink",
    "FileSink",
    "InboundMessage",
    "MessageIngestor",
    "ObjectArrayValue",
    "ObjectValue",
    "SinkWriteError",
    "TextValue",
    "TopicStore",
    "TopicValue",
    "ValueKind",
    "classify",
    "create_app",
    "run_bridge",
]
