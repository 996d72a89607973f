"""Message mirrors: console echo or append-only output file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import IO, Protocol, TextIO

from mqttsnap.exceptions import SinkWriteError
from mqttsnap.models.message import InboundMessage

_logger = logging.getLogger(__name__)

_SEPARATOR = b" - "
_NEWLINE = b"\n"


class MessageSink(Protocol):
    """Where every inbound message is mirrored before classification."""

    async def write(self, message: InboundMessage) -> None:
        ...

    async def close(self) -> None:
        ...


class ConsoleSink:
    """Print ``[topic]`` followed by the decoded payload."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    async def write(self, message: InboundMessage) -> None:
        print(f"[{message.topic}]\n{message.payload_text()}", file=self._stream)

    async def close(self) -> None:
        return None


class FileSink:
    """Append ``topic - payload\\n`` records to a file.

    Each record is four separate unbuffered writes (topic, separator,
    payload, newline) executed off the event loop. Nothing makes the four
    writes atomic; a failure part way through leaves a partial record and
    raises :class:`SinkWriteError`.
    """

    def __init__(self, path: Path, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._path = Path(path)
        self._loop = loop
        self._fh: IO[bytes] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _open(self) -> IO[bytes]:
        if self._fh is None:
            try:
                self._fh = open(self._path, "ab", buffering=0)  # noqa: SIM115
            except OSError as exc:
                raise SinkWriteError(f"Unable to open {self._path}: {exc}", path=str(self._path)) from exc
            _logger.debug("Output file opened path=%s", self._path)
        return self._fh

    def _write_all(self, chunk: bytes) -> None:
        fh = self._open()
        view = memoryview(chunk)
        try:
            while view:
                written = fh.write(view)
                if not written:
                    raise OSError(f"short write ({len(view)} bytes left)")
                view = view[written:]
        except OSError as exc:
            raise SinkWriteError(f"Unable to write data to {self._path}: {exc}", path=str(self._path)) from exc

    async def write(self, message: InboundMessage) -> None:
        loop = self._loop or asyncio.get_running_loop()
        for chunk in (message.topic.encode("utf-8"), _SEPARATOR, message.payload, _NEWLINE):
            await loop.run_in_executor(None, self._write_all, chunk)

    async def close(self) -> None:
        fh = self._fh
        self._fh = None
        if fh is not None:
            loop = self._loop or asyncio.get_running_loop()
            await loop.run_in_executor(None, fh.close)
