"""Unit tests for the command-line entry point."""

import json
from unittest.mock import patch

import pytest

from icy_relay.__main__ import load_config, main, parse_args
from icy_relay.server import RelayStartupError


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    """Settings file with a valid configuration and a clean environment."""
    for key in ("ICY_RELAY_STATION_URL", "ICY_RELAY_LOCAL_URL", "ICY_RELAY_TITLE_FILE", "LOG_LEVEL", "LOG_PATH"):
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "stationUrl": "http://radio.example.com/stream",
                "localUrl": "http://localhost:51111/",
                "titleFilePath": str(tmp_path / "title.txt"),
            }
        ),
        encoding="utf-8",
    )
    return path


class TestLoadConfig:
    """Test configuration assembly."""

    def test_file_values(self, settings_file):
        """Test settings file values are used."""
        config = load_config(parse_args(["--settings", str(settings_file)]))

        assert config.station_url == "http://radio.example.com/stream"

    def test_command_line_overrides(self, settings_file, monkeypatch):
        """Test command line wins over file and environment."""
        monkeypatch.setenv("ICY_RELAY_STATION_URL", "http://env.example.com/")

        config = load_config(
            parse_args(
                [
                    "--settings",
                    str(settings_file),
                    "--station-url",
                    "http://cli.example.com/live",
                    "--log-level",
                    "debug",
                ]
            )
        )

        assert config.station_url == "http://cli.example.com/live"
        assert config.log_level == "DEBUG"

    def test_invalid_override_rejected(self, settings_file):
        """Test an invalid override fails validation."""
        with pytest.raises(ValueError):
            load_config(parse_args(["--settings", str(settings_file), "--local-url", "nope"]))


class TestMain:
    """Test process exit codes."""

    def test_first_start_exits(self, tmp_path, capsys):
        """Test the first start writes settings and asks for a review."""
        settings = tmp_path / "settings.json"

        assert main(["--settings", str(settings)]) == 1

        assert settings.exists()
        assert "First launch detected" in capsys.readouterr().err

    def test_bind_failure_exits(self, settings_file):
        """Test a startup failure gives a non-zero exit code."""
        with patch("icy_relay.__main__.setup_logging"), patch(
            "icy_relay.__main__.asyncio.run", side_effect=RelayStartupError("in use")
        ) as run:
            assert main(["--settings", str(settings_file)]) == 1

        run.call_args.args[0].close()

    def test_clean_exit(self, settings_file):
        """Test a normal shutdown exits with zero."""
        with patch("icy_relay.__main__.setup_logging"), patch(
            "icy_relay.__main__.asyncio.run"
        ) as run:
            assert main(["--settings", str(settings_file)]) == 0

        run.call_args.args[0].close()

    @pytest.mark.parametrize("values", [{"logLevel": None}, {"logLevel": 10}, {"logPath": 5}])
    def test_bad_value_type_reported(self, settings_file, capsys, values):
        """Test a wrongly typed setting is reported instead of crashing."""
        data = json.loads(settings_file.read_text(encoding="utf-8"))
        settings_file.write_text(json.dumps({**data, **values}), encoding="utf-8")

        with patch("icy_relay.__main__.setup_logging") as setup:
            assert main(["--settings", str(settings_file)]) == 1

        setup.assert_not_called()
        assert "Invalid log_" in capsys.readouterr().err
