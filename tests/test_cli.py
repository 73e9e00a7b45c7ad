"""Tests for CLI interface"""

from __future__ import annotations

import logging
from pathlib import Path

import click
import pytest
import yaml
from click.testing import CliRunner

from filegate.cli import _die, cli, setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "FILEGATE_API_GATEWAY_URL",
        "FILEGATE_CHAT_SERVER_URL",
        "FILEGATE_TIMEOUT",
        "FILEGATE_TOKEN",
        "FILEGATE_SESSION_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep config discovery away from the developer's files
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config_file(tmp_path) -> Path:
    path = tmp_path / "filegate.yml"
    path.write_text(
        yaml.safe_dump(
            {
                "backends": {"api_gateway_url": "https://api.example.com"},
                "session": {"token": "tok", "session_id": "sid"},
                "upload": {"upload_limit": 4},
            }
        ),
        encoding="utf-8",
    )
    return path


class TestSetupLogging:
    """Tests for setup_logging function"""

    def test_setup_logging_info_level(self):
        """Test that logging is set to INFO level by default"""
        setup_logging(verbose=False)
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test that logging is set to DEBUG level when verbose"""
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG


class TestDie:
    """Tests for _die function"""

    def test_die_without_exception(self):
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=False)

    def test_die_with_exception(self):
        with pytest.raises(click.ClickException, match="Test error"):
            _die("Test error", verbose=True, exc=ValueError("Test exception"))


class TestCommands:
    """Tests for CLI commands that need no network"""

    def test_size(self):
        result = CliRunner().invoke(cli, ["size", "1536"], obj={})
        assert result.exit_code == 0
        assert result.output.strip() == "1.50 KB"

    def test_download_url(self, config_file):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "url", "a.pdf"], obj={})
        assert result.exit_code == 0
        assert result.output.strip() == "https://api.example.com/api/files/download/a.pdf"

    def test_preview_url_with_auth(self, config_file):
        result = CliRunner().invoke(
            cli, ["--config", str(config_file), "url", "a.pdf", "--preview", "--with-auth"], obj={}
        )
        assert result.exit_code == 0
        assert result.output.strip() == "https://api.example.com/api/files/view/a.pdf?token=tok&sessionId=sid"

    def test_preview_url_without_session(self):
        result = CliRunner().invoke(cli, ["url", "a.pdf", "--preview", "--with-auth"], obj={})
        assert result.exit_code == 1
        assert "No authentication credentials available." in result.output

    def test_info_without_session(self):
        result = CliRunner().invoke(cli, ["info", "f1"], obj={})
        assert result.exit_code == 1
        assert "No authentication credentials available." in result.output

    def test_upload_rejects_oversized_file(self, config_file, tmp_path):
        data = tmp_path / "data.bin"
        data.write_bytes(b"0123456789")

        result = CliRunner().invoke(cli, ["--config", str(config_file), "upload", str(data)], obj={})

        assert result.exit_code == 1
        assert "File size limit exceeded." in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text(yaml.safe_dump({"retry": {"max_retries": 99}}), encoding="utf-8")

        result = CliRunner().invoke(cli, ["--config", str(path), "url", "a.pdf"], obj={})

        assert result.exit_code == 1
        assert "retry.max_retries" in result.output
