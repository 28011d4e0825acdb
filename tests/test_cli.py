"""Tests for the kohakuipam CLI."""

import json

import pytest
from typer.testing import CliRunner

from kohakuipam.cli.main import app
from kohakuipam.config import config
from kohakuipam.db.base import close_database
from kohakuipam.models.enums import LogLevel

runner = CliRunner()

LAYOUT = "10.0.0.0/8/4/4/4/4/8"


@pytest.fixture
def invoke(db_path):
    def _invoke(*args):
        return runner.invoke(
            app, ["--db", db_path, "--layout", LAYOUT, "--log-level", "warning", *args]
        )

    yield _invoke
    close_database()


def test_layout_show(invoke):
    result = invoke("layout", "show", "--json")
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["cidr"] == "10.0.0.0/8"
    assert data["endpoints_per_triple"] == 16


def test_layout_show_table(invoke):
    result = invoke("layout", "show")
    assert result.exit_code == 0
    assert "stride" in result.stdout


def test_layout_decode(invoke):
    result = invoke("layout", "decode", "10.17.17.3")
    assert result.exit_code == 0
    assert "network_id=1" in result.stdout


def test_layout_decode_invalid(invoke):
    result = invoke("layout", "decode", "10.17.16.1")
    assert result.exit_code == 1


def test_allocate_release_cycle(invoke):
    result = invoke("endpoint", "allocate", "1", "1", "1", "--name", "vm-a", "--json")
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["ip"] == "10.17.16.3"
    assert data["network_id"] == 0
    assert data["endpoint"]["name"] == "vm-a"

    result = invoke("endpoint", "release", "10.17.16.3", "--json")
    assert result.exit_code == 0
    assert json.loads(result.stdout)["previous"]["ip"] == "10.17.16.3"

    result = invoke("endpoint", "allocate", "1", "1", "1")
    assert result.exit_code == 0
    assert "Reclaimed 10.17.16.3" in result.stdout


def test_release_unknown(invoke):
    result = invoke("endpoint", "release", "10.17.16.3")
    assert result.exit_code == 1


def test_list(invoke):
    invoke("endpoint", "allocate", "1", "1", "1")
    invoke("endpoint", "allocate", "2", "1", "1")
    result = invoke("endpoint", "list", "--tenant", "2")
    assert result.exit_code == 0
    assert "10.18.16.3" in result.stdout
    assert "10.17.16.3" not in result.stdout


def test_list_empty(invoke):
    result = invoke("endpoint", "list", "--active")
    assert result.exit_code == 0
    assert "No endpoints found" in result.stdout


def test_release_unknown_json_error(invoke):
    result = invoke("endpoint", "release", "10.17.16.3", "--json")
    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert data["kind"] == "not_found"
    assert data["status_code"] == 404


def test_unopenable_database_reports_error(tmp_path):
    # A directory cannot be opened as the SQLite file
    args = ["--db", str(tmp_path), "--layout", LAYOUT, "--log-level", "warning"]
    result = runner.invoke(app, [*args, "endpoint", "allocate", "1", "1", "1", "--json"])
    close_database()
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "store_fault" in result.stdout
    assert "503" in result.stdout


def test_log_level_from_environment(db_path, monkeypatch):
    monkeypatch.setattr(config, "LOG_LEVEL", config.LOG_LEVEL)
    monkeypatch.setenv("KOHAKUIPAM_LOG_LEVEL", "debug")
    result = runner.invoke(app, ["--db", db_path, "--layout", LAYOUT, "layout", "show"])
    close_database()
    assert result.exit_code == 0
    assert config.LOG_LEVEL == LogLevel.DEBUG


def test_log_level_keeps_config_when_unset(db_path, monkeypatch):
    monkeypatch.setattr(config, "LOG_LEVEL", LogLevel.INFO)
    monkeypatch.delenv("KOHAKUIPAM_LOG_LEVEL", raising=False)
    result = runner.invoke(app, ["--db", db_path, "--layout", LAYOUT, "layout", "show"])
    close_database()
    assert result.exit_code == 0
    assert config.LOG_LEVEL == LogLevel.INFO
