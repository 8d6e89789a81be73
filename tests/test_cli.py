"""Tests for the beachmsg and beachpatrol entry points."""

from __future__ import annotations

import pytest

from beachpatrol.cli import client_main, server_main
from beachpatrol.client import ServerUnavailableError


@pytest.fixture
def scripts_env(monkeypatch, commands_dir, write_script):
    write_script("search", "def run(ctx, *args):\n    pass\n")
    monkeypatch.setenv("BEACHPATROL_COMMANDS_DIR", str(commands_dir))
    return commands_dir


@pytest.fixture
def sent(monkeypatch):
    """Replace send_command; records calls and returns a configurable line."""
    calls: list[tuple] = []
    state = {"response": "Command executed successfully.\n"}

    def _send(name, args=(), endpoint=None, timeout=None):
        calls.append((name, list(args)))
        if isinstance(state["response"], Exception):
            raise state["response"]
        return state["response"]

    monkeypatch.setattr("beachpatrol.cli.send_command", _send)
    return calls, state


# ---------------------------------------------------------------------------
# beachmsg
# ---------------------------------------------------------------------------


class TestClientMain:
    def test_version(self, capsys):
        client_main(["--version"])
        assert capsys.readouterr().out.startswith("v")

    def test_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            client_main(["--help"])
        assert excinfo.value.code == 0
        assert "beachmsg <command> [args...]" in capsys.readouterr().out

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            client_main([])
        assert excinfo.value.code == 1
        assert "Error: No command specified." in capsys.readouterr().err

    def test_unknown_command_is_rejected_locally(self, scripts_env, sent, capsys):
        calls, _ = sent
        with pytest.raises(SystemExit) as excinfo:
            client_main(["doesnotexist"])
        assert excinfo.value.code == 1
        assert (
            "Error: Command script doesnotexist.py does not exist."
            in capsys.readouterr().err
        )
        assert calls == []

    def test_overlong_command_is_rejected_locally(self, scripts_env, sent, capsys):
        calls, _ = sent
        with pytest.raises(SystemExit) as excinfo:
            client_main(["a" * 300])
        assert excinfo.value.code == 1
        assert "does not exist." in capsys.readouterr().err
        assert calls == []

    def test_path_traversal_is_rejected_locally(self, scripts_env, sent, capsys):
        calls, _ = sent
        with pytest.raises(SystemExit) as excinfo:
            client_main(["../../etc/passwd"])
        assert excinfo.value.code == 1
        assert "No path traversal allowed." in capsys.readouterr().err
        assert calls == []

    def test_success(self, scripts_env, sent, capsys):
        calls, _ = sent
        client_main(["search", "cats", "and", "dogs"])
        assert calls == [("search", ["cats", "and", "dogs"])]
        assert capsys.readouterr().out == "Command executed successfully.\n"

    def test_dash_arguments_are_passed_through(self, scripts_env, sent):
        calls, _ = sent
        client_main(["search", "--not-a-flag", "-x"])
        assert calls == [("search", ["--not-a-flag", "-x"])]

    def test_error_response_exits_nonzero(self, scripts_env, sent, capsys):
        _, state = sent
        state["response"] = "Error: Failed to execute command. boom\n"
        with pytest.raises(SystemExit) as excinfo:
            client_main(["search"])
        assert excinfo.value.code == 1
        assert capsys.readouterr().out == "Error: Failed to execute command. boom\n"

    def test_server_not_running(self, scripts_env, sent, capsys):
        _, state = sent
        state["response"] = ServerUnavailableError("No such file or directory")
        with pytest.raises(SystemExit) as excinfo:
            client_main(["search"])
        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert "Could not connect to the beachpatrol socket" in err
        assert "Have you started beachpatrol?" in err

    def test_bundled_search_script_is_found(self, sent):
        calls, _ = sent
        client_main(["search", "cats"])
        assert calls == [("search", ["cats"])]


# ---------------------------------------------------------------------------
# beachpatrol
# ---------------------------------------------------------------------------


@pytest.fixture
def started(monkeypatch):
    configs: list = []
    monkeypatch.setattr("beachpatrol.server.start_server", configs.append)
    return configs


class TestServerMain:
    def test_defaults(self, started):
        server_main([])
        (config,) = started
        assert config.browser.browser_name == "chromium"
        assert config.browser.profile == "default"
        assert config.browser.incognito is False
        assert config.browser.launch_options["headless"] is False

    def test_flags(self, started):
        server_main(
            ["--profile", "work", "--browser", "firefox", "--incognito", "--headless"]
        )
        (config,) = started
        assert config.browser.browser_name == "firefox"
        assert config.browser.profile == "work"
        assert config.browser.incognito is True
        assert config.browser.launch_options["headless"] is True

    def test_unsupported_browser(self, started, capsys):
        with pytest.raises(SystemExit) as excinfo:
            server_main(["--browser", "webkit"])
        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert "Error: Unsupported browser webkit" in err
        assert "Supported browsers: chromium, firefox" in err
        assert started == []

    def test_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            server_main(["--help"])
        assert excinfo.value.code == 0
        assert "--incognito" in capsys.readouterr().out

    def test_startup_failure_exits_nonzero(self, monkeypatch, capsys):
        def _fail(config):
            raise RuntimeError("Executable doesn't exist")

        monkeypatch.setattr("beachpatrol.server.start_server", _fail)
        with pytest.raises(SystemExit) as excinfo:
            server_main([])
        assert excinfo.value.code == 1
        assert "Error: Executable doesn't exist" in capsys.readouterr().err
