"""Terminal launcher

Spawns terminal emulator windows attached to abduco sockets, locally or
over SSH. The window's instance (X11) / app_id (Wayland) is set to the
managed mark so the tracker can find the new window:

    alacritty --class _wsmux:devbox:ws4-001 -T ... -e bash -c '<wrapper>'

The wrapper runs the attach command and keeps the window open on a non-zero
exit so connection errors stay readable. For a named session it then checks
whether any of the session's sockets survive on the session host and, if
none do, deletes the stored record and its lock files.
"""

import logging
import os
import shlex
import subprocess

from .access.transport import ssh_options
from .config import (
    BASE_DIR,
    LOCK_PID_SUFFIX,
    LOCK_SUFFIX,
    LOCKS_SUBDIR,
    MULTIPLEXER,
    SESSION_SUFFIX,
    SESSIONS_SUBDIR,
    SOCKET_DIR,
    SSH_COMMAND,
    SSH_CONTROL_DIR,
    TERM_ENV,
    TERMINAL,
)
from .core.ids import is_local
from .errors import TerminalLaunchError
from .telemetry import get_logger
from .wm.marks import mark_for

_logger = get_logger(__name__)

# Flag that sets the window instance / app_id, by terminal basename
INSTANCE_FLAGS = {
    "alacritty": "--class",
    "kitty": "--name",
    "foot": "--app-id",
    "xterm": "-name",
    "uxterm": "-name",
    "urxvt": "-name",
    "rxvt": "-name",
    "st": "-n",
}
DEFAULT_INSTANCE_FLAG = "-name"


def instance_flag(terminal: str) -> str:
    """Instance flag for a terminal command line (first word's basename)."""
    words = shlex.split(terminal)
    name = os.path.basename(words[0]) if words else ""
    return INSTANCE_FLAGS.get(name, DEFAULT_INSTANCE_FLAG)


class TerminalLauncher:
    """Builds and runs terminal command lines for managed sockets."""

    def __init__(
        self,
        terminal: str = TERMINAL,
        multiplexer: str = MULTIPLEXER,
        socket_dir: str = SOCKET_DIR,
        control_dir: str = SSH_CONTROL_DIR,
        base_dir: str = BASE_DIR,
        logger: logging.Logger | None = None,
    ):
        self.terminal = terminal
        self.multiplexer = multiplexer
        self.socket_dir = socket_dir.rstrip("/")
        self.control_dir = control_dir
        self.base_dir = base_dir.rstrip("/")
        self._logger = logger or _logger

    def socket_path(self, socket: str) -> str:
        return f"{self.socket_dir}/{socket}"

    def attach_command(self, host: str, socket: str) -> str:
        """Shell command that creates or reattaches the socket's session."""
        mux = shlex.join([self.multiplexer, "-A", self.socket_path(socket)])
        session = f'exec {mux} "${{SHELL:-bash}}"'
        if is_local(host):
            return session
        ssh = shlex.join([SSH_COMMAND, "-tt", *ssh_options(self.control_dir), host, session])
        return f"TERM={TERM_ENV} {ssh}"

    def cleanup_command(self, host: str, session: str, sockets: list[str]) -> str:
        """Shell command that deletes a session's record once none of its sockets remain.

        ``sockets`` are matched by workspace prefix (``ws4-*``) so terminals
        opened after this one are covered too.
        """
        prefixes = sorted({socket.rsplit("-", 1)[0] for socket in sockets})
        patterns = " ".join(shlex.quote(self.socket_path(prefix)) + "-*" for prefix in prefixes)
        files = shlex.join(
            [
                f"{self.base_dir}/{SESSIONS_SUBDIR}/{session}{SESSION_SUFFIX}",
                f"{self.base_dir}/{LOCKS_SUBDIR}/{session}{LOCK_SUFFIX}",
                f"{self.base_dir}/{LOCKS_SUBDIR}/{session}{LOCK_PID_SUFFIX}",
            ]
        )
        check = f"if ! ls -d {patterns} 2>/dev/null | grep -q .; then rm -f {files}; fi"
        if is_local(host):
            return check
        ssh = shlex.join([SSH_COMMAND, *ssh_options(self.control_dir), host, check])
        return f"{ssh} 2>/dev/null || true"

    def wrapper(self, host: str, socket: str, session: str | None = None, sockets: list[str] | None = None) -> str:
        attach = self.attach_command(host, socket)
        cleanup = self.cleanup_command(host, session, [*(sockets or []), socket]) if session else None
        if is_local(host):
            if cleanup is None:
                # `exec` replaces the wrapper shell; nothing after it runs
                return attach
            return f"{attach.removeprefix('exec ')}; {cleanup}"
        wrapper = (
            f"{attach}; rc=$?; "
            'if [ "$rc" -ne 0 ]; then read -r -p "wsmux: session ended with status $rc, press Enter to close" _; fi'
        )
        if cleanup is not None:
            wrapper += f"; {cleanup}"
        return wrapper

    def build_argv(
        self, host: str, socket: str, session: str | None = None, sockets: list[str] | None = None
    ) -> list[str]:
        instance = mark_for(host, socket)
        return [
            *shlex.split(self.terminal),
            instance_flag(self.terminal),
            instance,
            "-T",
            f"{host}:{socket}",
            "-e",
            "bash",
            "-c",
            self.wrapper(host, socket, session, sockets),
        ]

    def launch(
        self, host: str, socket: str, session: str | None = None, sockets: list[str] | None = None
    ) -> subprocess.Popen:
        """Open a terminal window attached to ``socket`` on ``host``.

        With ``session`` the window cleans up the session's stored record
        when the last of ``sockets`` (plus ``socket``) has exited.

        Returns immediately; the window appears asynchronously.

        Raises:
            TerminalLaunchError: If the terminal could not be started
        """
        argv = self.build_argv(host, socket, session, sockets)
        self._logger.debug(f"[Terminal] Launching {socket} on {host}")
        return self._spawn(argv)

    def launch_plain(self) -> subprocess.Popen:
        """Open an ordinary, unmanaged terminal window."""
        return self._spawn(shlex.split(self.terminal))

    def _spawn(self, argv: list[str]) -> subprocess.Popen:
        try:
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise TerminalLaunchError(
                f"Cannot start terminal '{argv[0]}': {e}",
                context={"terminal": self.terminal},
            ) from e
