"""Bridge configuration for mqttsnap."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from mqttsnap.exceptions import BridgeConfigError

DEFAULT_TOPIC = "#"
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 12345
SUPPORTED_PROTOCOL_VERSIONS = (3, 5)


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    host : str
        Broker URI, e.g. ``mqtt://broker.local:1883``. The scheme selects
        the transport (``tcp``/``mqtt`` plain, ``ssl``/``mqtts`` TLS,
        ``ws``/``wss`` websockets).
    username : str or None
        Broker username.
    password : str or None
        Broker password.
    topic : str
        Subscription filter. Defaults to ``"#"`` (all topics).
    output : Path or None
        When set, every inbound message is appended to this file instead
        of being printed to the console.
    protocol_version : int
        ``3`` for MQTT 3.1.1 (default) or ``5`` for MQTT 5.
    http_host : str
        Interface the snapshot server listens on.
    http_port : int
        Port the snapshot server listens on.
    keepalive : int
        MQTT keepalive interval in seconds.
    qos : int
        Subscription QoS.
    session_expiry : int
        Session expiry interval in seconds sent on MQTT 5 connects.
    """

    host: str
    username: str | None = None
    password: str | None = None
    topic: str = DEFAULT_TOPIC
    output: Path | None = None
    protocol_version: int = 3
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = DEFAULT_HTTP_PORT
    keepalive: int = 30
    qos: int = 1
    session_expiry: int = 3600

    def validate(self) -> BridgeConfig:
        """Check option values and return ``self``.

        Raises
        ------
        BridgeConfigError
            If any option is out of range.
        """
        if not self.host or not self.host.strip():
            raise BridgeConfigError("Broker host is required")
        if self.protocol_version not in SUPPORTED_PROTOCOL_VERSIONS:
            raise BridgeConfigError(
                f"Unsupported protocol version {self.protocol_version} (expected 3 or 5)"
            )
        if self.qos not in (0, 1, 2):
            raise BridgeConfigError(f"Invalid QoS {self.qos} (expected 0, 1 or 2)")
        if not self.topic:
            raise BridgeConfigError("Topic filter must not be empty")
        if self.http_port <= 0 or self.http_port > 65535:
            raise BridgeConfigError(f"Invalid HTTP port {self.http_port}")
        if self.keepalive <= 0:
            raise BridgeConfigError(f"Invalid keepalive {self.keepalive}")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Reads ``MQTTSNAP_HOST`` and the optional ``MQTTSNAP_*`` variables.
        Explicit keyword arguments override environment values; ``None``
        overrides are ignored so unset CLI flags fall through to the
        environment.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        BridgeConfig
            Populated configuration.
        """
        env = os.environ
        overrides = {key: value for key, value in overrides.items() if value is not None}

        _ENV_STR_MAP = {
            "MQTTSNAP_HOST": "host",
            "MQTTSNAP_USERNAME": "username",
            "MQTTSNAP_PASSWORD": "password",
            "MQTTSNAP_TOPIC": "topic",
            "MQTTSNAP_HTTP_HOST": "http_host",
        }
        _ENV_INT_MAP = {
            "MQTTSNAP_PROTOCOL_VERSION": "protocol_version",
            "MQTTSNAP_HTTP_PORT": "http_port",
            "MQTTSNAP_KEEPALIVE": "keepalive",
            "MQTTSNAP_QOS": "qos",
            "MQTTSNAP_SESSION_EXPIRY": "session_expiry",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = int(val)
            except ValueError as exc:
                raise BridgeConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        output_env = env.get("MQTTSNAP_OUTPUT")
        if output_env and "output" not in overrides:
            config_kwargs["output"] = Path(output_env)

        config_kwargs.update(overrides)
        if isinstance(config_kwargs.get("output"), str):
            config_kwargs["output"] = Path(config_kwargs["output"])

        if "host" not in config_kwargs:
            raise BridgeConfigError("Broker host is required (--host or MQTTSNAP_HOST)")

        return cls(**config_kwargs)
