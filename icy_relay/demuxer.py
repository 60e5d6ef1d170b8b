"""ICY stream demultiplexer.

With ``icy-metaint: N`` negotiated, the station interleaves its audio like so::

    [N bytes audio][1 byte L][L * 16 bytes metadata][N bytes audio][1 byte L]...

The demultiplexer forwards audio to the local client as it arrives, pulls the
metadata frames out of the stream and reports title changes.
"""

import logging
from typing import Awaitable, Callable, Optional, Protocol

from .metadata import ICY_MAX_METADATA_LENGTH, ICY_METADATA_BLOCK_SIZE, parse_stream_title

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 16 * 1024


class StreamSource(Protocol):
    """Upstream body reader (``aiohttp.StreamReader`` compatible)."""

    async def read(self, n: int = -1) -> bytes: ...


class StreamSink(Protocol):
    """Local response writer (``aiohttp.web.StreamResponse`` compatible)."""

    async def write(self, data: bytes) -> None: ...


TitleCallback = Callable[[str], Awaitable[bool]]


class IcyDemuxer:
    """Splits an ICY stream into audio payload and metadata frames."""

    def __init__(
        self,
        reader: StreamSource,
        writer: StreamSink,
        metaint: int,
        on_title: TitleCallback,
        keep_metadata: bool = False,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize demultiplexer.

        Args:
            reader: Upstream body.
            writer: Local client response.
            metaint: Audio bytes between metadata frames, 0 for none.
            on_title: Called with each new title, returns True once published.
            keep_metadata: Echo length bytes and frames to the client as well.
            log: Message sink for status lines.
        """
        if metaint < 0:
            raise ValueError(f"metaint must be >= 0, got {metaint}")

        self.reader = reader
        self.writer = writer
        self.metaint = metaint
        self.on_title = on_title
        self.keep_metadata = keep_metadata
        self.log = log or logger

        self._length_buffer = bytearray(1)
        self._metadata_buffer = bytearray(ICY_MAX_METADATA_LENGTH)
        self.last_title = ""

        self.bytes_sent = 0
        self.metadata_frames = 0
        self.titles = 0

    async def run(self) -> None:
        """Relay until the upstream stream ends.

        Returns normally at end of stream. Cancellation and write errors
        propagate to the caller.
        """
        if self.metaint == 0:
            self.bytes_sent += await passthrough(self.reader, self.writer)
            self.log.info("End of radio stream.")
            return

        payload = bytearray(self.metaint)
        while (
            await self._fill(payload, self.metaint, forward=True)
            and await self._fill(self._length_buffer, 1, forward=self.keep_metadata)
            and await self._read_metadata()
        ):
            pass

        self.log.info("End of radio stream.")

    async def _read_metadata(self) -> bool:
        self.metadata_frames += 1
        length = self._length_buffer[0] * ICY_METADATA_BLOCK_SIZE
        if length == 0:
            return True

        if not await self._fill(self._metadata_buffer, length, forward=self.keep_metadata):
            return False

        title = parse_stream_title(bytes(self._metadata_buffer[:length]))
        self.log.debug(f"Metadata frame ({length} bytes): {title!r}")

        if title != self.last_title and await self.on_title(title):
            self.last_title = title
            self.titles += 1
        return True

    async def _fill(self, buffer: bytearray, count: int, forward: bool) -> bool:
        """Read exactly ``count`` bytes into ``buffer``.

        Sub-chunks are forwarded as soon as they arrive when ``forward`` is set.

        Returns:
            bool: False if the stream ended first.
        """
        offset = 0
        while offset < count:
            chunk = await self.reader.read(count - offset)
            if not chunk:
                return False
            if forward:
                await self.writer.write(chunk)
                self.bytes_sent += len(chunk)
            buffer[offset : offset + len(chunk)] = chunk
            offset += len(chunk)
        return True


async def passthrough(
    reader: StreamSource, writer: StreamSink, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> int:
    """Copy a stream byte for byte until it ends.

    Returns:
        int: Number of bytes copied.
    """
    copied = 0
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            return copied
        await writer.write(chunk)
        copied += len(chunk)
