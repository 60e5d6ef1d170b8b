"""ICY Relay for internet radio stations.

This package relays a remote Icecast/Shoutcast station to a local HTTP
endpoint and keeps the current track title in a text file for stream
overlays.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import Config
from .metadata import parse_stream_title
from .publisher import TitlePublisher
from .server import RelayServer, RelayStartupError

__all__ = ["Config", "RelayServer", "RelayStartupError", "TitlePublisher", "parse_stream_title"]
