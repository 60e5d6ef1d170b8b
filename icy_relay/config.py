"""Configuration management for the ICY relay.

Settings live in a JSON file next to the program (created with defaults on
first start) and can be overridden with environment variables.
"""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from yarl import URL

SETTINGS_FILE_NAME = "settings.json"

DEFAULT_STATION_URL = "http://79.120.39.202:8000/darkelectro"
DEFAULT_LOCAL_URL = "http://localhost:51111/"
DEFAULT_TITLE_FILE = str(Path("ObsNowPlaying") / "LocalStationCurrentSong.txt")

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# JSON key -> dataclass field
_FILE_KEYS = {
    "stationUrl": "station_url",
    "localUrl": "local_url",
    "titleFilePath": "title_file_path",
    "logLevel": "log_level",
    "logPath": "log_path",
}


@dataclass(frozen=True)
class Config:
    """Immutable relay configuration."""

    station_url: str = DEFAULT_STATION_URL
    local_url: str = DEFAULT_LOCAL_URL
    title_file_path: str = DEFAULT_TITLE_FILE

    log_level: str = "INFO"
    log_path: Optional[str] = None

    # Set when the settings file had to be generated.
    first_start: bool = False
    settings_path: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_file(cls, path: Union[str, Path] = SETTINGS_FILE_NAME) -> "Config":
        """Load configuration from a JSON settings file.

        A missing file is created with default values and the returned config
        is marked as ``first_start`` so the caller can ask the user to review it.

        Args:
            path: Settings file location.

        Returns:
            Config: Loaded configuration.

        Raises:
            ValueError: If the file is not a valid JSON object.
        """
        path = Path(path)
        if not path.exists():
            defaults = cls()
            path.write_text(json.dumps(defaults.to_dict(), indent=2), encoding="utf-8")
            return replace(defaults, first_start=True, settings_path=str(path.resolve()))

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Unable to read program settings from {path.resolve()}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Unable to read program settings from {path.resolve()}")

        # Keys are matched case-insensitively, unknown keys are ignored.
        lowered = {key.lower(): value for key, value in data.items()}
        values: Dict[str, Any] = {}
        for json_key, attr in _FILE_KEYS.items():
            if json_key.lower() in lowered:
                values[attr] = lowered[json_key.lower()]

        return cls(**values, settings_path=str(path.resolve()))

    @classmethod
    def from_env(cls, base: Optional["Config"] = None) -> "Config":
        """Apply environment variable overrides.

        Environment variables:
            ICY_RELAY_STATION_URL: Upstream station URL
            ICY_RELAY_LOCAL_URL: Local listen URL
            ICY_RELAY_TITLE_FILE: Title file path
            LOG_LEVEL: Logging level
            LOG_PATH: Directory for the JSON log file

        Args:
            base: Configuration to override (defaults when omitted).

        Returns:
            Config: Configuration with environment values applied.
        """
        base = base or cls()
        log_level = os.getenv("LOG_LEVEL", base.log_level)
        return replace(
            base,
            station_url=os.getenv("ICY_RELAY_STATION_URL", base.station_url),
            local_url=os.getenv("ICY_RELAY_LOCAL_URL", base.local_url),
            title_file_path=os.getenv("ICY_RELAY_TITLE_FILE", base.title_file_path),
            log_level=log_level.upper() if isinstance(log_level, str) else log_level,
            log_path=os.getenv("LOG_PATH", base.log_path),
        )

    @property
    def station(self) -> URL:
        return URL(self.station_url)

    @property
    def local(self) -> URL:
        return URL(self.local_url)

    @property
    def local_host(self) -> str:
        return self.local.host or "localhost"

    @property
    def local_port(self) -> int:
        return self.local.port or 80

    def to_dict(self) -> Dict[str, Any]:
        """Settings file representation."""
        return {json_key: getattr(self, attr) for json_key, attr in _FILE_KEYS.items()}

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If configuration values are invalid.
        """
        where = f", check {self.settings_path}" if self.settings_path else ""

        # The local listener only speaks plain HTTP.
        for name, schemes in (("station_url", ("http", "https")), ("local_url", ("http",))):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Invalid {name}{where}")
            try:
                url = URL(value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid {name} '{value}'{where}") from e
            if url.scheme not in schemes or not url.host:
                expected = "/".join(schemes)
                raise ValueError(f"Invalid {name} '{value}': expected a {expected} URL{where}")

        if not isinstance(self.title_file_path, str) or not self.title_file_path.strip():
            raise ValueError(f"Invalid title_file_path{where}")

        if not isinstance(self.log_level, str) or self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if not isinstance(self.log_path, (str, type(None))):
            raise ValueError(f"Invalid log_path: {self.log_path!r}{where}")

        if self.first_start:
            raise ValueError(
                f"First launch detected. Verify settings at {self.settings_path} "
                "and restart the program."
            )
