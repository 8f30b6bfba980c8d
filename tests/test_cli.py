"""
Tests for the command line interface (src/cli.py)
"""

import argparse
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import cli
from storage.json_file import JSONFileStorage


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    path = tmp_path / "state.json"
    monkeypatch.setenv("STORAGE_BACKEND", "json")
    monkeypatch.setenv("ISSUANCE_STATE_FILE", str(path))
    return path


class TestStatusCommand:

    def test_no_state(self, state_file, capsys):
        assert cli.cmd_status(argparse.Namespace()) == 0
        assert "No persisted issuance state found." in capsys.readouterr().out

    def test_persisted_state(self, state_file, bootstrapped, capsys):
        JSONFileStorage(str(state_file)).save_state(bootstrapped.to_dict())

        assert cli.cmd_status(argparse.Namespace()) == 0

        out = capsys.readouterr().out
        assert "Total supply: 1000000" in out
        assert "Issuers: 1 / 100" in out
        assert "0xAlice" in out

    def test_unreadable_state(self, state_file, capsys):
        state_file.write_text("{broken")

        assert cli.cmd_status(argparse.Namespace()) == 1
        assert "Error:" in capsys.readouterr().out


class TestInfoAndCheck:

    def test_info(self, capsys):
        assert cli.cmd_info(argparse.Namespace()) == 0

        out = capsys.readouterr().out
        assert f"Version: {cli.__version__}" in out
        assert "max_issuers: 100" in out
        assert "backend_type: MemoryStorage" in out

    def test_check_passes(self, capsys):
        assert cli.cmd_check(argparse.Namespace()) == 0
        assert "All checks passed!" in capsys.readouterr().out

    def test_check_reports_bad_configuration(self, monkeypatch, capsys):
        monkeypatch.setenv("ISSUANCE_MAX_ISSUERS", "0")

        assert cli.cmd_check(argparse.Namespace()) == 1
        assert "Configuration: FAIL" in capsys.readouterr().out


class TestMain:

    def test_version(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["issuance", "--version"])

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 0
        assert cli.__version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["issuance"])

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 1
        assert "serve" in capsys.readouterr().out
