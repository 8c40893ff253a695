"""Error taxonomy.

Every failure raised by wsmux derives from ``WsmuxError`` and carries a
``context`` dict (host, session, command, ...) so a message can be diagnosed
without re-running with verbose logging.

Categories:
- NotFound: session, window or remote process absent
- Locked: a valid lock is held by another owner
- Timeout: a bounded polling loop ran out of attempts
- Transport: the SSH channel itself failed (vs. a remote command failing)
- InvalidInput: malformed names, hosts or persisted records
- PartialState: durable progress was made but follow-up steps failed
"""

from typing import Any


class WsmuxError(Exception):
    """Base exception with structured context."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def describe(self) -> str:
        """Message followed by context, one ``key: value`` per line."""
        lines = [self.message]
        for key, value in self.context.items():
            if value is None or value == "":
                continue
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)


# === NotFound ===


class NotFoundError(WsmuxError):
    """Something expected to exist does not."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, name: str, host: str, detail: str = ""):
        super().__init__(
            f"Session '{name}' not found on {host}",
            context={"session": name, "host": host, "detail": detail},
        )
        self.name = name
        self.host = host


class EmptyLayoutError(NotFoundError):
    """Layout capture found no managed terminals."""


# === Locked ===


class LockedError(WsmuxError):
    """A valid lock on the session is held by someone else."""

    def __init__(self, session: str, owner_host: str | None = None, acquired_at: str | None = None):
        if owner_host:
            message = (
                f"Session '{session}' is locked by {owner_host} (acquired {acquired_at}). "
                "Use --force to break the lock."
            )
        else:
            message = f"Session '{session}' is locked. Use --force to break the lock."
        super().__init__(
            message,
            context={"session": session, "owner": owner_host, "acquired_at": acquired_at},
        )
        self.session = session
        self.owner_host = owner_host
        self.acquired_at = acquired_at


# === Timeout ===


class WaitTimeoutError(WsmuxError):
    """A bounded polling loop exhausted its attempts."""

    def __init__(self, message: str, attempts: int, context: dict[str, Any] | None = None):
        super().__init__(message, context={"attempts": attempts, **(context or {})})
        self.attempts = attempts


class WindowNotFoundError(WaitTimeoutError, NotFoundError):
    """The window for a spawned terminal never appeared."""


class LockAcquisitionError(WaitTimeoutError):
    """The remote lock holder never reported its pid."""


# === Transport ===


class TransportError(WsmuxError):
    """The SSH channel failed (connect, auth, timeout, missing binary)."""

    def __init__(
        self,
        message: str,
        host: str,
        command: str = "",
        stderr: str = "",
        returncode: int | None = None,
    ):
        super().__init__(
            message,
            context={
                "host": host,
                "command": command,
                "stderr": stderr.strip(),
                "returncode": returncode,
            },
        )
        self.host = host
        self.command = command
        self.stderr = stderr
        self.returncode = returncode


class RemoteCommandError(TransportError):
    """The channel worked but the remote command exited non-zero."""


# === InvalidInput ===


class InvalidInputError(WsmuxError):
    """Malformed user input, rejected at the boundary."""


class SessionFormatError(InvalidInputError):
    """A persisted session record could not be parsed."""


# === State ===


class InvalidStateError(WsmuxError):
    """The operation does not apply to the current workspace state."""


class WorkspaceBusyError(InvalidStateError):
    """The target workspace already holds managed windows."""


class WindowManagerError(WsmuxError):
    """The window manager IPC failed or returned an unexpected reply."""


class TerminalLaunchError(WsmuxError):
    """The terminal emulator could not be started."""


# === PartialState ===


class PartialStateError(WsmuxError):
    """Some steps completed before a failure; durable data is intact."""

    def __init__(self, message: str, completed: list[str] | None = None, context: dict[str, Any] | None = None):
        super().__init__(message, context={"completed": ", ".join(completed or []), **(context or {})})
        self.completed = list(completed or [])
