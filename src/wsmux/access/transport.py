"""SSH transport for remote session stores.

Every call goes through a shared ControlMaster socket, so only the first
command per host pays for the handshake.
"""

import logging
import os
import subprocess
from dataclasses import dataclass

from ..config import (
    SSH_COMMAND,
    SSH_CONTROL_DIR,
    SSH_CONTROL_PERSIST,
    SSH_TIMEOUT_SECONDS,
    SSH_TRANSPORT_FAILURE_CODE,
)
from ..errors import RemoteCommandError, TransportError
from ..telemetry import get_logger, metrics

_logger = get_logger(__name__)


def ssh_options(control_dir: str = SSH_CONTROL_DIR) -> list[str]:
    """Connection-sharing options, also used by remote terminal windows."""
    return [
        "-o", "ControlMaster=auto",
        "-o", f"ControlPath={control_dir}/%r@%h:%p",
        "-o", f"ControlPersist={SSH_CONTROL_PERSIST}",
    ]


@dataclass
class TransportResult:
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class SshTransport:
    """Runs shell commands on one remote host.

    ``execute`` separates channel failures (ssh itself exits 255, times out
    or is missing) from the remote command's own exit status; ``run`` turns
    a non-zero remote status into ``RemoteCommandError``.
    """

    def __init__(
        self,
        host: str,
        control_dir: str = SSH_CONTROL_DIR,
        timeout: float = SSH_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ):
        self.host = host
        self.control_dir = control_dir
        self.timeout = timeout
        self._logger = logger or _logger

    def build_command(self, cmd: str, tty: bool = False) -> list[str]:
        argv = [SSH_COMMAND]
        if tty:
            argv.append("-tt")
        argv.extend(ssh_options(self.control_dir))
        argv.extend([self.host, cmd])
        return argv

    def execute(self, cmd: str, stdin: str | None = None) -> TransportResult:
        """Run ``cmd`` remotely and return its output, whatever its status.

        Raises:
            TransportError: The SSH channel failed
        """
        self._ensure_control_dir()
        argv = self.build_command(cmd)
        self._logger.debug(f"[SSH] {self.host}: {cmd}")

        try:
            proc = subprocess.run(
                argv,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            metrics.inc("transport.error", {"reason": "timeout"})
            raise TransportError(
                f"SSH to {self.host} timed out after {self.timeout}s",
                host=self.host,
                command=cmd,
            ) from e
        except OSError as e:
            metrics.inc("transport.error", {"reason": "spawn"})
            raise TransportError(f"Cannot run {SSH_COMMAND}: {e}", host=self.host, command=cmd) from e

        if proc.returncode == SSH_TRANSPORT_FAILURE_CODE:
            metrics.inc("transport.error", {"reason": "channel"})
            raise TransportError(
                f"SSH connection to {self.host} failed",
                host=self.host,
                command=cmd,
                stderr=proc.stderr,
                returncode=proc.returncode,
            )

        return TransportResult(stdout=proc.stdout, stderr=proc.stderr, returncode=proc.returncode)

    def run(self, cmd: str, stdin: str | None = None) -> str:
        """Run ``cmd`` and return stdout.

        Raises:
            TransportError: The SSH channel failed
            RemoteCommandError: The remote command exited non-zero
        """
        result = self.execute(cmd, stdin=stdin)
        if not result.ok:
            raise RemoteCommandError(
                f"Remote command failed on {self.host} (exit {result.returncode})",
                host=self.host,
                command=cmd,
                stderr=result.stderr,
                returncode=result.returncode,
            )
        return result.stdout

    def check(self, cmd: str) -> bool:
        """True if ``cmd`` exits 0."""
        return self.execute(cmd).ok

    def spawn(self, cmd: str) -> subprocess.Popen:
        """Start a long-lived remote command with a forced pty.

        The process runs in its own session so it survives this invocation;
        killing it hangs up the pty, which the remote shell sees as SIGHUP.

        Raises:
            TransportError: ssh could not be started
        """
        self._ensure_control_dir()
        argv = self.build_command(cmd, tty=True)
        try:
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            metrics.inc("transport.error", {"reason": "spawn"})
            raise TransportError(f"Cannot run {SSH_COMMAND}: {e}", host=self.host, command=cmd) from e

    def _ensure_control_dir(self) -> None:
        os.makedirs(self.control_dir, mode=0o700, exist_ok=True)
