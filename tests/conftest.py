"""
Pytest configuration and shared fixtures for all tests
"""

import os
import sys
from typing import List

import pytest

# Add project root to Python path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.dirname(project_root))

from icy_relay.metadata import ICY_METADATA_BLOCK_SIZE  # noqa: E402


def metadata_frame(text: str) -> bytes:
    """Encode metadata text as length byte + NUL padded frame."""
    raw = text.encode("utf-8")
    blocks = -(-len(raw) // ICY_METADATA_BLOCK_SIZE)
    return bytes([blocks]) + raw.ljust(blocks * ICY_METADATA_BLOCK_SIZE, b"\x00")


def icy_stream(metaint: int, payloads: List[bytes], frames: List[bytes]) -> bytes:
    """Interleave payload chunks with encoded metadata frames."""
    out = bytearray()
    for index, payload in enumerate(payloads):
        out += payload
        if index < len(frames):
            out += frames[index]
    return bytes(out)


class ChunkReader:
    """In-memory stand-in for ``aiohttp.StreamReader``.

    Returns at most one queued chunk (or part of it) per read.
    """

    def __init__(self, data: bytes, chunk_size: int = 1000):
        self.chunks = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if not self.chunks:
            return b""
        chunk = self.chunks[0]
        if n < 0 or n >= len(chunk):
            self.chunks.pop(0)
            return chunk
        self.chunks[0] = chunk[n:]
        return chunk[:n]


class RecordingWriter:
    """In-memory stand-in for ``aiohttp.web.StreamResponse``."""

    def __init__(self):
        self.data = bytearray()
        self.writes = 0

    async def write(self, data: bytes) -> None:
        self.writes += 1
        self.data += data


@pytest.fixture
def title_file(tmp_path):
    """Title file location inside a temporary directory."""
    return tmp_path / "ObsNowPlaying" / "current.txt"


@pytest.fixture
def recording_writer():
    return RecordingWriter()
