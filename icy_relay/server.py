"""Relay server.

Listens on the local endpoint and relays the configured station to whoever
connected last. A new connection immediately displaces the relay in progress.
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

import aiohttp
from aiohttp import web

from .config import Config
from .publisher import TitlePublisher
from .session import RelaySession, describe_client
from .slot import ActiveSessionSlot, SessionHandle

logger = logging.getLogger(__name__)


class RelayStartupError(RuntimeError):
    """Raised when the local endpoint cannot be bound."""


class ServerState(str, Enum):
    """Relay server states."""

    STOPPED = "stopped"
    LISTENING = "listening"


class RelayServer:
    """Accepts local connections and runs one relay session per connection."""

    def __init__(
        self,
        config: Config,
        publisher: Optional[TitlePublisher] = None,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize relay server.

        Args:
            config: Validated relay configuration.
            publisher: Title file publisher (created from config when omitted).
            log: Message sink for status lines.
        """
        self.config = config
        self.log = log or logger
        self.publisher = publisher or TitlePublisher(config.title_file_path, log=self.log)
        self.slot = ActiveSessionSlot()
        self.state = ServerState.STOPPED
        self.connections = 0

        self._runner: Optional[web.AppRunner] = None
        self._http_session: Optional[aiohttp.ClientSession] = None
        self._stopped: Optional[asyncio.Event] = None

    @property
    def bound_addresses(self) -> List:
        return list(self._runner.addresses) if self._runner else []

    @property
    def port(self) -> Optional[int]:
        addresses = self.bound_addresses
        return addresses[0][1] if addresses else None

    def create_app(self) -> web.Application:
        """Build the aiohttp application: every GET path relays the station."""
        app = web.Application()
        app.router.add_get("/{tail:.*}", self.handle_connection, allow_head=False)
        return app

    async def start(self) -> None:
        """Bind the local endpoint and start accepting connections.

        Raises:
            RelayStartupError: If the endpoint cannot be bound.
        """
        if self.state is ServerState.LISTENING:
            return

        self._stopped = asyncio.Event()
        self._http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None),
            auto_decompress=False,
        )
        self._runner = web.AppRunner(self.create_app(), handle_signals=False, access_log=None)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.config.local_host, self.config.local_port)
        try:
            await site.start()
        except OSError as e:
            await self._release_resources()
            raise RelayStartupError(
                f"Cannot listen on {self.config.local_url}: {e}"
            ) from e

        self.state = ServerState.LISTENING
        self._report_on_start()

    async def serve_forever(self) -> None:
        """Start and run until ``shutdown`` is called."""
        await self.start()
        await self._stopped.wait()

    async def shutdown(self) -> None:
        """Stop relaying, stop listening and clear the title file.

        Safe to call more than once.
        """
        if self.state is ServerState.STOPPED:
            self.publisher.clear()
            return

        self.log.info("Shutting down relay server...")
        self.state = ServerState.STOPPED

        active = self.slot.exchange(None)
        if active is not None:
            active.cancel()

        await self._release_resources()
        self.publisher.clear()
        if self._stopped is not None:
            self._stopped.set()
        self.log.info("Relay server stopped")

    async def handle_connection(self, request: web.Request) -> web.StreamResponse:
        """Displace the relay in progress and relay to this client."""
        self.connections += 1
        handle = SessionHandle(asyncio.current_task(), label=describe_client(request))

        previous = self.slot.exchange(handle)
        if previous is not None:
            previous.cancel()
            # The newer session owns the title file from here on.
            self.publisher.clear()

        session = RelaySession(
            request,
            handle,
            self.slot,
            self.config.station_url,
            self._http_session,
            self.publisher,
            log=self.log,
        )
        return await session.run()

    def _report_on_start(self) -> None:
        self.log.info(f"Radio: {self.config.station_url}")
        self.log.info(f"Update song name from: {Path(self.config.title_file_path).resolve()}")
        self.log.info(f"Grab media stream from: {self.config.local_url}")
        self.log.info("Waiting for connection...")

    async def _release_resources(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        if self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
