"""Custom exception hierarchy for mqttsnap."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all mqttsnap errors."""


class BridgeConfigError(BridgeError):
    """Invalid or missing configuration."""


class BrokerError(BridgeError):
    """Failure reported by the MQTT broker collaborator."""


class BrokerConnectionError(BrokerError):
    """Client construction, socket connect, or CONNACK failure."""

    def __init__(self, message: str, *, reason: str = "") -> None:
        self.reason = reason
        super().__init__(message)


class BrokerSubscriptionError(BrokerError):
    """Broker rejected the topic subscription (SUBACK failure)."""

    def __init__(self, message: str, *, topic: str = "", reason: str = "") -> None:
        self.topic = topic
        self.reason = reason
        super().__init__(message)


class SinkWriteError(BridgeError):
    """Appending a message to the output file failed.

    This is fatal: the ingestor stops and the process exits non-zero.
    No attempt is made to repair a partially written record.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)
