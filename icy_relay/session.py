"""Relay session: one local client paired with one upstream station request."""

import asyncio
import logging
from typing import Optional

import aiohttp
from aiohttp import hdrs, web
from multidict import CIMultiDict, CIMultiDictProxy

from .demuxer import IcyDemuxer
from .publisher import TitlePublisher
from .slot import ActiveSessionSlot, SessionHandle

logger = logging.getLogger(__name__)

ICY_METADATA_HEADER = "Icy-MetaData"
ICY_METAINT_HEADER = "icy-metaint"
DEFAULT_ACCEPT = "audio/*"

# Owned by each HTTP hop, never forwarded.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
REQUEST_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length"}
RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-length"}


def build_upstream_headers(client_headers: CIMultiDictProxy) -> CIMultiDict:
    """Build the station request headers from the local client's headers.

    Every end-to-end header is kept with all its values. Metadata is always
    requested from the station, and audio is preferred when the client did not
    say what it accepts.
    """
    headers: CIMultiDict = CIMultiDict()
    for key, value in client_headers.items():
        if key.lower() not in REQUEST_SKIP_HEADERS:
            headers.add(key, value)

    if ICY_METADATA_HEADER not in headers:
        headers[ICY_METADATA_HEADER] = "1"
    if hdrs.ACCEPT not in headers:
        headers[hdrs.ACCEPT] = DEFAULT_ACCEPT
    return headers


def copy_response_headers(source: CIMultiDictProxy, target: CIMultiDict) -> None:
    """Copy station response headers to the local response, one entry per value."""
    for key, value in source.items():
        if key.lower() not in RESPONSE_SKIP_HEADERS:
            target.add(key, value)


def parse_metaint(headers: CIMultiDictProxy) -> int:
    """Get the advertised metadata interval.

    Returns:
        int: Payload bytes between metadata frames, or 0 if the header is
        missing, repeated or not a positive integer.
    """
    values = headers.getall(ICY_METAINT_HEADER, [])
    if len(values) != 1:
        return 0
    try:
        metaint = int(values[0].strip())
    except ValueError:
        return 0
    return metaint if metaint > 0 else 0


def describe_client(request: web.Request) -> str:
    """Client address and user agent for log lines."""
    peer = request.transport.get_extra_info("peername") if request.transport else None
    if isinstance(peer, tuple) and len(peer) >= 2:
        address = f"{peer[0]}:{peer[1]}"
    else:
        address = request.remote or "unknown"
    user_agent = request.headers.get(hdrs.USER_AGENT, "")
    return f"{address} {user_agent}".strip()


def client_disconnected(request: web.Request) -> bool:
    """Whether the local client's connection is gone."""
    transport = request.transport
    return transport is None or transport.is_closing()


class RelaySession:
    """Relays the station stream to one local client."""

    def __init__(
        self,
        request: web.Request,
        handle: SessionHandle,
        slot: ActiveSessionSlot,
        station_url: str,
        http_session: aiohttp.ClientSession,
        publisher: TitlePublisher,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize session.

        Args:
            request: Local client request.
            handle: This session's cancellation handle.
            slot: Server slot the handle was installed in.
            station_url: Upstream station URL.
            http_session: Client session used for the station request.
            publisher: Title file publisher.
            log: Message sink for status lines.
        """
        self.request = request
        self.handle = handle
        self.slot = slot
        self.station_url = station_url
        self.http_session = http_session
        self.publisher = publisher
        self.log = log or logger

        self.client = describe_client(request)
        self.log_extra = {"client": self.client}
        self.response = web.StreamResponse()
        self.demuxer: Optional[IcyDemuxer] = None

    @property
    def keep_metadata(self) -> bool:
        """Whether the client asked for metadata frames in its own stream."""
        return ICY_METADATA_HEADER in self.request.headers

    async def run(self) -> web.StreamResponse:
        """Relay until the station stream ends, the client leaves or the
        session is displaced.

        Returns:
            web.StreamResponse: The (closed) local response.
        """
        self.log.info(f"Got connection from {self.client}", extra=self.log_extra)

        try:
            await self._relay()
        except asyncio.CancelledError:
            if not self.handle.cancel_requested:
                raise
            self.log.debug(
                f"{self.client} connection is cancelled by the server.", extra=self.log_extra
            )
        except ConnectionResetError as e:
            if client_disconnected(self.request):
                self.log.debug(
                    f"{self.client} connection is cancelled by the user.", extra=self.log_extra
                )
            else:
                self.log.info(
                    f"Station connection reset for {self.client}: {e}", extra=self.log_extra
                )
                if not self.response.prepared:
                    self.response.set_status(502)
        except aiohttp.ClientError as e:
            self.log.info(f"Station request failed for {self.client}: {e}", extra=self.log_extra)
            if not self.response.prepared:
                self.response.set_status(502)
        except Exception as e:
            self.log.error(
                f"Unexpected error relaying to {self.client}: {e}",
                exc_info=True,
                extra=self.log_extra,
            )
            if not self.response.prepared:
                self.response.set_status(500)
        finally:
            if self.slot.release(self.handle):
                self.publisher.clear()
            await self._close()
            self.log.info(f"Terminated connection from {self.client}", extra=self.log_extra)

        return self.response

    async def _relay(self) -> None:
        headers = build_upstream_headers(self.request.headers)

        async with self.http_session.get(self.station_url, headers=headers) as upstream:
            self.response.set_status(upstream.status, upstream.reason)
            copy_response_headers(upstream.headers, self.response.headers)
            await self.response.prepare(self.request)

            metaint = parse_metaint(upstream.headers)
            if metaint == 0:
                self.log.debug(
                    f"No metadata interval from station, relaying {self.client} as is",
                    extra=self.log_extra,
                )

            self.demuxer = IcyDemuxer(
                upstream.content,
                self.response,
                metaint,
                self._publish_title,
                keep_metadata=self.keep_metadata,
                log=self.log,
            )
            await self.demuxer.run()

    async def _publish_title(self, title: str) -> bool:
        self.log.info(f"Now playing: {title}", extra={**self.log_extra, "title": title})
        return self.publisher.publish(title)

    async def _close(self) -> None:
        """Finish the local response, ignoring a client that is already gone."""
        try:
            if not self.response.prepared:
                await self.response.prepare(self.request)
            await self.response.write_eof()
        except (ConnectionResetError, RuntimeError) as e:
            self.log.debug(f"{self.client} response already closed: {e}", extra=self.log_extra)
