"""Process lifecycle: connect, subscribe, ingest, serve."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import signal
import sys

from aiohttp import web

from mqttsnap._mqtt import MqttRuntime, parse_broker_uri
from mqttsnap._redact import redact_for_log, redact_uri
from mqttsnap.config import BridgeConfig
from mqttsnap.exceptions import BridgeConfigError, BrokerConnectionError, BrokerSubscriptionError, SinkWriteError
from mqttsnap.ingestion.ingestor import MessageIngestor
from mqttsnap.ingestion.sink import ConsoleSink, FileSink, MessageSink
from mqttsnap.server import create_app, run_server
from mqttsnap.state.store import TopicStore

_logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _report_fatal(context: str, exc: BaseException) -> None:
    print(f"[ERROR] {context}: {exc}.", file=sys.stderr)


def _build_sink(config: BridgeConfig) -> MessageSink:
    if config.output is not None:
        return FileSink(config.output)
    return ConsoleSink()


class Bridge:
    """Wires the MQTT runtime, ingestor, topic store and HTTP server together.

    Usage::

        exit_code = await Bridge(config).run()
    """

    def __init__(self, config: BridgeConfig) -> None:
        self._config = config
        self._store = TopicStore()
        self._runtime: MqttRuntime | None = None
        self._runner: web.AppRunner | None = None

    @property
    def store(self) -> TopicStore:
        return self._store

    async def run(self) -> int:
        """Run until the message stream ends; return the process exit code."""
        config = self._config
        loop = asyncio.get_running_loop()
        _logger.debug("Bridge config %s", redact_for_log(dataclasses.asdict(config)))

        try:
            endpoint = parse_broker_uri(config.host)
            runtime = MqttRuntime(
                loop=loop,
                endpoint=endpoint,
                protocol_version=config.protocol_version,
                username=config.username,
                password=config.password,
                keepalive=config.keepalive,
                session_expiry=config.session_expiry,
            )
        except BridgeConfigError as exc:
            _report_fatal("Error when creating MQTT client", exc)
            return EXIT_FAILURE
        self._runtime = runtime

        try:
            try:
                await runtime.connect()
            except BrokerConnectionError as exc:
                _report_fatal("MQTT connection failed", exc)
                return EXIT_FAILURE

            try:
                await runtime.subscribe(config.topic, qos=config.qos)
            except BrokerSubscriptionError as exc:
                _report_fatal("Failed to subscribe topic", exc)
                return EXIT_FAILURE

            _logger.info('Connected to %s with topic "%s".', redact_uri(config.host), config.topic)
            return await self._serve(loop, runtime)
        finally:
            await self._shutdown(loop)

    async def _serve(self, loop: asyncio.AbstractEventLoop, runtime: MqttRuntime) -> int:
        config = self._config
        ingestor = MessageIngestor(self._store, _build_sink(config))
        ingest_task = asyncio.create_task(ingestor.run(runtime.stream), name="mqttsnap-ingestor")

        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(signum, runtime.close_stream)

        try:
            self._runner = await run_server(create_app(self._store), config.http_host, config.http_port)
        except OSError as exc:
            _logger.warning("HTTP Server not started, reason: %s.", exc)
            runtime.close_stream()
            with contextlib.suppress(SinkWriteError):
                await ingest_task
            return EXIT_FAILURE

        try:
            await ingest_task
        except SinkWriteError as exc:
            _report_fatal("Unable to write data", exc)
            return EXIT_FAILURE
        return EXIT_OK

    async def _shutdown(self, loop: asyncio.AbstractEventLoop) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signum)

        runner = self._runner
        self._runner = None
        if runner is not None:
            await runner.cleanup()

        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            await loop.run_in_executor(None, runtime.stop)


async def run_bridge(config: BridgeConfig) -> int:
    """Run a :class:`Bridge` for *config* and return the exit code."""
    return await Bridge(config).run()
