"""Tests for TerminalLauncher"""

import subprocess
from unittest.mock import patch

import pytest

from wsmux.errors import TerminalLaunchError
from wsmux.terminal import TerminalLauncher, instance_flag


class TestInstanceFlag:
    """Test per-emulator instance flags"""

    @pytest.mark.parametrize(
        "terminal,flag",
        [
            ("alacritty", "--class"),
            ("/usr/bin/kitty", "--name"),
            ("foot", "--app-id"),
            ("st", "-n"),
            ("xterm -fa Mono", "-name"),
            ("i3-sensible-terminal", "-name"),
        ],
    )
    def test_flags(self, terminal, flag):
        assert instance_flag(terminal) == flag


class TestBuildArgv:
    """Test terminal command lines"""

    def test_local(self):
        launcher = TerminalLauncher(terminal="alacritty")

        argv = launcher.build_argv("local", "ws1-001")

        assert argv[:3] == ["alacritty", "--class", "_wsmux:local:ws1-001"]
        assert argv[3:5] == ["-T", "local:ws1-001"]
        assert argv[5:8] == ["-e", "bash", "-c"]
        assert argv[8] == 'exec abduco -A /tmp/ws1-001 "${SHELL:-bash}"'

    def test_remote(self):
        launcher = TerminalLauncher(terminal="alacritty", control_dir="/tmp/ctl")

        wrapper = launcher.build_argv("user@devbox", "ws4-002")[-1]

        assert wrapper.startswith("TERM=xterm-256color ssh -tt ")
        assert "ControlPath=/tmp/ctl/%r@%h:%p" in wrapper
        assert "user@devbox 'exec abduco -A /tmp/ws4-002" in wrapper
        assert 'rc=$?; if [ "$rc" -ne 0 ]' in wrapper

    def test_terminal_with_arguments(self):
        launcher = TerminalLauncher(terminal="xterm -fa Mono")
        argv = launcher.build_argv("local", "ws1-001")
        assert argv[:5] == ["xterm", "-fa", "Mono", "-name", "_wsmux:local:ws1-001"]

    def test_custom_socket_dir(self):
        launcher = TerminalLauncher(socket_dir="/run/user/1000/")
        assert launcher.socket_path("ws1-001") == "/run/user/1000/ws1-001"


class TestCleanupOnExit:
    """Test removal of a session's record once its last terminal is gone"""

    def test_local_session(self):
        launcher = TerminalLauncher(terminal="alacritty", base_dir="/tmp/wsmux")

        wrapper = launcher.build_argv("local", "ws1-002", session="work", sockets=["ws1-001"])[-1]

        assert wrapper == (
            'abduco -A /tmp/ws1-002 "${SHELL:-bash}"; '
            "if ! ls -d /tmp/ws1-* 2>/dev/null | grep -q .; then "
            "rm -f /tmp/wsmux/sessions/work.json /tmp/wsmux/locks/work.lock /tmp/wsmux/locks/work.lock.pid; fi"
        )

    def test_remote_session_checks_every_prefix(self):
        launcher = TerminalLauncher(terminal="alacritty", control_dir="/tmp/ctl", base_dir="/tmp/wsmux")

        wrapper = launcher.wrapper("user@devbox", "ws4-001", session="work", sockets=["ws2-001", "ws2-003"])

        attach_end = wrapper.index("press Enter to close")
        cleanup = wrapper[attach_end:]
        assert "ls -d /tmp/ws2-* /tmp/ws4-* 2>/dev/null" in cleanup
        assert "rm -f /tmp/wsmux/sessions/work.json" in cleanup
        assert "user@devbox 'if ! ls" in cleanup
        assert cleanup.endswith("2>/dev/null || true")

    def test_unsafe_socket_dir_quoted_glob_kept(self):
        launcher = TerminalLauncher(socket_dir="/tmp/my sockets")
        cleanup = launcher.cleanup_command("local", "work", ["ws1-001"])
        assert "'/tmp/my sockets/ws1'-* " in cleanup

    def test_without_session_nothing_removed(self):
        launcher = TerminalLauncher(terminal="alacritty")
        assert "rm -f" not in launcher.wrapper("user@devbox", "ws4-001")
        assert launcher.wrapper("local", "ws1-001").startswith("exec ")


class TestLaunch:
    """Test process spawning"""

    def test_launch_detached(self):
        launcher = TerminalLauncher(terminal="alacritty")
        with patch("wsmux.terminal.subprocess.Popen") as mock_popen:
            launcher.launch("local", "ws1-001")

        argv = mock_popen.call_args.args[0]
        assert argv[0] == "alacritty"
        assert mock_popen.call_args.kwargs["start_new_session"] is True
        assert mock_popen.call_args.kwargs["stdout"] == subprocess.DEVNULL

    def test_launch_with_session(self):
        launcher = TerminalLauncher(terminal="alacritty")
        with patch("wsmux.terminal.subprocess.Popen") as mock_popen:
            launcher.launch("user@devbox", "ws1-001", session="work", sockets=["ws1-001"])
        assert "sessions/work.json" in mock_popen.call_args.args[0][-1]

    def test_launch_plain(self):
        launcher = TerminalLauncher(terminal="alacritty")
        with patch("wsmux.terminal.subprocess.Popen") as mock_popen:
            launcher.launch_plain()
        assert mock_popen.call_args.args[0] == ["alacritty"]

    def test_missing_terminal(self):
        launcher = TerminalLauncher(terminal="no-such-terminal")
        with patch("wsmux.terminal.subprocess.Popen", side_effect=FileNotFoundError("no-such-terminal")):
            with pytest.raises(TerminalLaunchError) as exc_info:
                launcher.launch("local", "ws1-001")
        assert exc_info.value.context["terminal"] == "no-such-terminal"
