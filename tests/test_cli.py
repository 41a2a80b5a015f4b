"""
Tests for the typer host commands that do not touch the network.
"""

import pytest
from typer.testing import CliRunner

from asset_refresher import __version__
from asset_refresher.cli import app as cli_app
from asset_refresher.exceptions import NetworkUnavailableError
from asset_refresher.network.monitor import NetworkMonitor
from asset_refresher.storage.config_manager import ConfigManager

URL = "https://cdn.example.com/demo.mp4"

runner = CliRunner()


class OfflineMonitor(NetworkMonitor):
    async def probe(self) -> bool:
        return False


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "conf" / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    return path


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_config(config_file, tmp_path):
    asset = tmp_path / "media" / "demo.mp4"

    result = runner.invoke(cli_app.app, ["init", URL, str(asset)])

    assert result.exit_code == 0
    config = ConfigManager(config_file).load_config()
    assert config.download_url == URL
    assert config.asset_path == str(asset)


def test_init_rejects_invalid_url(config_file, tmp_path):
    result = runner.invoke(cli_app.app, ["init", "ftp://nope", str(tmp_path / "a.mp4")])

    assert result.exit_code == 1
    assert not config_file.exists()


def test_validate_without_config(config_file):
    result = runner.invoke(cli_app.app, ["validate"])

    assert result.exit_code == 1
    assert "invalid" in result.output


def test_status_reports_present_asset(config_file, tmp_path):
    asset = tmp_path / "demo.mp4"
    asset.write_bytes(b"video")
    ConfigManager(config_file).save_new_config(
        {"download_url": URL, "asset_path": str(asset)}
    )

    result = runner.invoke(cli_app.app, ["status"])

    assert result.exit_code == 0
    assert "Canonical" in result.output


def test_run_offline_keeps_existing_asset(config_file, tmp_path, monkeypatch):
    asset = tmp_path / "demo.mp4"
    asset.write_bytes(b"video")
    ConfigManager(config_file).save_new_config(
        {"download_url": URL, "asset_path": str(asset)}
    )
    monkeypatch.setattr(cli_app, "NetworkMonitor", OfflineMonitor)

    result = runner.invoke(cli_app.app, ["run"])

    assert result.exit_code == 0
    assert "Kept the existing asset" in result.output
    assert asset.read_bytes() == b"video"


def test_run_offline_without_asset_fails(config_file, tmp_path, monkeypatch):
    ConfigManager(config_file).save_new_config(
        {"download_url": URL, "asset_path": str(tmp_path / "demo.mp4")}
    )
    monkeypatch.setattr(cli_app, "NetworkMonitor", OfflineMonitor)

    result = runner.invoke(cli_app.app, ["run"])

    assert result.exit_code == 1
    assert isinstance(result.exception, NetworkUnavailableError)
