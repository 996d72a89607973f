"""Internal MQTT endpoint parsing, message stream, and runtime."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from mqttsnap._redact import redact_uri
from mqttsnap.exceptions import BridgeConfigError, BrokerConnectionError, BrokerSubscriptionError
from mqttsnap.models.message import InboundMessage

# scheme -> (transport, tls, default port)
_SCHEMES: dict[str, tuple[str, bool, int]] = {
    "tcp": ("tcp", False, 1883),
    "mqtt": ("tcp", False, 1883),
    "ssl": ("tcp", True, 8883),
    "mqtts": ("tcp", True, 8883),
    "ws": ("websockets", False, 80),
    "wss": ("websockets", True, 443),
}

_DEFAULT_WS_PATH = "/mqtt"


@dataclass(frozen=True)
class BrokerEndpoint:
    """Where and how to reach the broker."""

    host: str
    port: int
    transport: str = "tcp"
    tls: bool = False
    path: str = _DEFAULT_WS_PATH
    username: str | None = None
    password: str | None = None


def parse_broker_uri(uri: str) -> BrokerEndpoint:
    """Parse a broker URI such as ``mqtts://user:pw@broker:8883``.

    A bare ``host[:port]`` is treated as ``tcp://``.
    """
    value = uri.strip()
    if not value:
        raise BridgeConfigError("Broker URI is empty")
    if "://" not in value:
        value = f"tcp://{value}"

    parts = urlsplit(value)
    scheme = parts.scheme.lower()
    if scheme not in _SCHEMES:
        raise BridgeConfigError(f"Unsupported broker URI scheme {scheme!r} in {redact_uri(uri)}")
    transport, tls, default_port = _SCHEMES[scheme]

    host = parts.hostname
    if not host:
        raise BridgeConfigError(f"Broker URI has no host: {redact_uri(uri)}")
    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise BridgeConfigError(f"Invalid broker port in {redact_uri(uri)}") from exc

    return BrokerEndpoint(
        host=host,
        port=port,
        transport=transport,
        tls=tls,
        path=parts.path or _DEFAULT_WS_PATH,
        username=parts.username,
        password=parts.password,
    )


_END = object()


class MessageStream:
    """Async iterator over inbound messages, fed from the MQTT network thread.

    Yields :class:`InboundMessage` items in arrival order, or ``None`` when
    the broker connection drops. Iteration ends after :meth:`close`.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    def feed(self, item: InboundMessage | None) -> None:
        """Enqueue *item*; event loop thread only."""
        if not self._closed:
            self._queue.put_nowait(item)

    def feed_threadsafe(self, item: InboundMessage | None) -> None:
        self._loop.call_soon_threadsafe(self.feed, item)

    def close(self) -> None:
        """End iteration once already queued items are consumed."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_END)

    def close_threadsafe(self) -> None:
        self._loop.call_soon_threadsafe(self.close)

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> InboundMessage | None:
        item = await self._queue.get()
        if item is _END:
            # Leave the marker for any other consumer.
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return cast(InboundMessage | None, item)


def _resolve(future: asyncio.Future[Any], exc: BaseException | None = None) -> None:
    if future.done():
        return
    if exc is None:
        future.set_result(None)
    else:
        future.set_exception(exc)


class MqttRuntime:
    """Threaded paho-mqtt runtime that feeds inbound messages onto an asyncio loop.

    ``connect()`` and ``subscribe()`` wait for CONNACK and SUBACK and raise
    on failure. After that, every PUBLISH lands in :attr:`stream`. When the
    connection drops a ``None`` is emitted; paho reconnects in the
    background and the subscription is renewed on reconnect.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        endpoint: BrokerEndpoint,
        protocol_version: int = 3,
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 30,
        session_expiry: int = 3600,
        logger: logging.Logger | None = None,
        client_factory: Callable[..., mqtt.Client] | None = None,
    ) -> None:
        self._loop = loop
        self._endpoint = endpoint
        self._protocol_version = protocol_version
        self._username = username if username is not None else endpoint.username
        self._password = password if password is not None else endpoint.password
        self._keepalive = keepalive
        self._session_expiry = session_expiry
        self._logger = logger or logging.getLogger(__name__)
        self._client_factory = client_factory or mqtt.Client
        self._client: mqtt.Client | None = None
        self._stream = MessageStream(loop)
        self._running = False
        self._connected = False
        self._connack: asyncio.Future[None] | None = None
        self._topic: str | None = None
        self._qos = 1
        self._pending_lock = threading.Lock()
        self._pending_subscribes: dict[int, asyncio.Future[None]] = {}

    @property
    def stream(self) -> MessageStream:
        return self._stream

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is running."""
        return self._running

    @property
    def is_mqtt5(self) -> bool:
        return self._protocol_version == 5

    def _build_client(self) -> mqtt.Client:
        kwargs: dict[str, Any] = {
            "callback_api_version": cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            "client_id": "",
            "protocol": mqtt.MQTTv5 if self.is_mqtt5 else mqtt.MQTTv311,
            "transport": self._endpoint.transport,
        }
        if not self.is_mqtt5:
            kwargs["clean_session"] = True
        try:
            client = self._client_factory(**kwargs)
            client.enable_logger(self._logger)
            if self._username is not None:
                client.username_pw_set(self._username, self._password)
            if self._endpoint.tls:
                client.tls_set()
            if self._endpoint.transport == "websockets":
                client.ws_set_options(path=self._endpoint.path)
        except (ValueError, OSError) as exc:
            raise BrokerConnectionError(f"Error when creating MQTT client: {exc}", reason=str(exc)) from exc

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        return client

    def _connect_blocking(self, client: mqtt.Client) -> None:
        if self.is_mqtt5:
            properties = Properties(PacketTypes.CONNECT)
            properties.SessionExpiryInterval = self._session_expiry
            client.connect(
                self._endpoint.host,
                self._endpoint.port,
                keepalive=self._keepalive,
                clean_start=True,
                properties=properties,
            )
        else:
            client.connect(self._endpoint.host, self._endpoint.port, keepalive=self._keepalive)
        client.loop_start()

    async def connect(self) -> None:
        """Connect and wait for the broker to accept the session.

        Raises
        ------
        BrokerConnectionError
            If the client cannot be built, the socket cannot be opened, or
            the broker refuses the connection.
        """
        client = self._build_client()
        self._client = client
        self._connack = self._loop.create_future()
        self._logger.debug(
            "MQTT connect requested host=%s port=%s transport=%s tls=%s protocol=%s",
            self._endpoint.host,
            self._endpoint.port,
            self._endpoint.transport,
            self._endpoint.tls,
            self._protocol_version,
        )
        try:
            await self._loop.run_in_executor(None, self._connect_blocking, client)
        except (OSError, ValueError) as exc:
            raise BrokerConnectionError(f"MQTT connection failed: {exc}", reason=str(exc)) from exc
        self._running = True
        self._logger.debug("MQTT network loop started")
        await self._connack

    async def subscribe(self, topic: str, qos: int = 1) -> None:
        """Subscribe to *topic* and wait for the SUBACK.

        Raises
        ------
        BrokerSubscriptionError
            If the request cannot be sent or the broker rejects it.
        """
        client = self._client
        if client is None or not self._running:
            raise BrokerSubscriptionError("MQTT client is not connected", topic=topic)

        self._topic = topic
        self._qos = qos
        future: asyncio.Future[None] = self._loop.create_future()
        with self._pending_lock:
            result, mid = client.subscribe(topic, qos=qos)
            if result == mqtt.MQTT_ERR_SUCCESS and mid is not None:
                self._pending_subscribes[mid] = future
        if result != mqtt.MQTT_ERR_SUCCESS:
            reason = mqtt.error_string(result)
            raise BrokerSubscriptionError(f"Failed to subscribe topic {topic!r}: {reason}", topic=topic, reason=reason)
        self._logger.debug("MQTT subscribe sent topic=%s qos=%s mid=%s", topic, qos, mid)
        await future

    def _on_connect(
        self,
        c: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        connack = self._connack
        if reason_code.is_failure:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            if connack is not None:
                error = BrokerConnectionError(f"MQTT connection refused: {reason_code}", reason=str(reason_code))
                self._loop.call_soon_threadsafe(_resolve, connack, error)
            return

        self._connected = True
        self._logger.debug("MQTT connected successfully reason=%s", reason_code)
        if connack is not None:
            self._loop.call_soon_threadsafe(_resolve, connack)
        if self._topic:
            # Clean sessions drop subscriptions on reconnect.
            self._logger.debug("MQTT resubscribing topic=%s", self._topic)
            c.subscribe(self._topic, qos=self._qos)

    def _on_subscribe(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        _properties: Any,
    ) -> None:
        with self._pending_lock:
            future = self._pending_subscribes.pop(mid, None)
        failures = [rc for rc in reason_code_list if rc.is_failure]
        if failures:
            self._logger.warning("MQTT subscription rejected topic=%s reason=%s", self._topic, failures[0])
        if future is None:
            return
        if failures:
            error = BrokerSubscriptionError(
                f"Failed to subscribe topic {self._topic!r}: {failures[0]}",
                topic=self._topic or "",
                reason=str(failures[0]),
            )
            self._loop.call_soon_threadsafe(_resolve, future, error)
        else:
            self._loop.call_soon_threadsafe(_resolve, future)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        try:
            topic = msg.topic
        except UnicodeDecodeError:
            self._logger.warning("Dropping PUBLISH with a non UTF-8 topic")
            return
        self._stream.feed_threadsafe(InboundMessage(topic=topic, payload=bytes(msg.payload)))

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        connack = self._connack
        if connack is not None and not self._connected:
            error = BrokerConnectionError(f"MQTT connection closed: {reason_code}", reason=str(reason_code))
            self._loop.call_soon_threadsafe(_resolve, connack, error)
        was_connected = self._connected
        self._connected = False
        if self._running and was_connected:
            self._logger.warning("MQTT disconnected: %s", reason_code)
            self._stream.feed_threadsafe(None)

    def close_stream(self) -> None:
        """End the message stream; event loop thread only."""
        self._stream.close()

    def stop(self) -> None:
        """Disconnect and stop the network loop. Blocking."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
            self._stream.close_threadsafe()
