"""Remote session store over SSH

Same on-disk layout as the local store, on the remote host. The lock is a
process: a detached ``ssh -tt`` runs a small bash script that claims the pid
file with noclobber, traps its own exit to delete the lock files, and then
sleeps forever. The lock is valid while that remote pid is alive; killing
the local ssh hangs up the pty and the remote trap cleans up.
"""

import logging
import shlex
import time
from collections.abc import Callable

from ..config import (
    BASE_DIR,
    LOCK_HEARTBEAT_SECONDS,
    LOCK_PID_SUFFIX,
    LOCK_PID_WAIT_ATTEMPTS,
    LOCK_PID_WAIT_INTERVAL_SECONDS,
    LOCK_RELEASE_WAIT_ATTEMPTS,
    LOCK_RELEASE_WAIT_INTERVAL_SECONDS,
    LOCK_SUFFIX,
    LOCKS_SUBDIR,
    SESSION_SUFFIX,
    SESSIONS_SUBDIR,
)
from ..errors import (
    LockAcquisitionError,
    LockedError,
    SessionFormatError,
    SessionNotFoundError,
    WsmuxError,
)
from ..session.models import SessionLock, SessionRecord
from ..telemetry import get_logger, metrics
from .base import LockHolder, SessionStore
from .transport import SshTransport

_logger = get_logger(__name__)

_LOCK_SCRIPT = """\
lock={lock}
pidfile={pidfile}
set -o noclobber
echo $$ > "$pidfile" || exit 1
set +o noclobber
trap 'rm -f "$lock" "$pidfile"' EXIT
trap 'exit 0' HUP TERM INT
printf '%s\\n' {content} > "$lock"
while true; do
  sleep {heartbeat} &
  wait $!
  echo "heartbeat $(date -u +%Y-%m-%dT%H:%M:%SZ)" >> "$lock"
done
"""


def build_lock_script(lock_path: str, pid_path: str, content: str, heartbeat: int = LOCK_HEARTBEAT_SECONDS) -> str:
    """Bash script run by the remote lock holder.

    The lock file's first line is ``content``; heartbeat lines follow.
    """
    return _LOCK_SCRIPT.format(
        lock=shlex.quote(lock_path),
        pidfile=shlex.quote(pid_path),
        content=shlex.quote(content),
        heartbeat=int(heartbeat),
    )


def _parse_pid(text: str) -> int | None:
    text = text.strip()
    if not text.isdigit():
        return None
    pid = int(text)
    return pid if pid > 0 else None


class RemoteSessionStore(SessionStore):
    """Sessions on a remote host, reached through ``SshTransport``."""

    def __init__(
        self,
        host: str,
        transport: SshTransport | None = None,
        base_dir: str = BASE_DIR,
        pid_wait_attempts: int = LOCK_PID_WAIT_ATTEMPTS,
        pid_wait_interval: float = LOCK_PID_WAIT_INTERVAL_SECONDS,
        release_wait_attempts: int = LOCK_RELEASE_WAIT_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ):
        self._host = host
        self.transport = transport or SshTransport(host)
        self.base_dir = base_dir.rstrip("/")
        self.pid_wait_attempts = pid_wait_attempts
        self.pid_wait_interval = pid_wait_interval
        self.release_wait_attempts = release_wait_attempts
        self._sleep = sleep
        self._logger = logger or _logger

    @property
    def host(self) -> str:
        return self._host

    @property
    def display_name(self) -> str:
        return f"remote {self._host}"

    # ==================== Paths ====================

    @property
    def sessions_dir(self) -> str:
        return f"{self.base_dir}/{SESSIONS_SUBDIR}"

    @property
    def locks_dir(self) -> str:
        return f"{self.base_dir}/{LOCKS_SUBDIR}"

    def session_path(self, name: str) -> str:
        return f"{self.sessions_dir}/{name}{SESSION_SUFFIX}"

    def lock_path(self, name: str) -> str:
        return f"{self.locks_dir}/{name}{LOCK_SUFFIX}"

    def pid_path(self, name: str) -> str:
        return f"{self.locks_dir}/{name}{LOCK_PID_SUFFIX}"

    # ==================== Records ====================

    def save(self, name: str, data: str) -> None:
        path = shlex.quote(self.session_path(name))
        tmp = shlex.quote(f"{self.session_path(name)}.tmp")
        self.transport.run(
            f"mkdir -p {shlex.quote(self.sessions_dir)} && cat > {tmp} && mv -f {tmp} {path}",
            stdin=data,
        )
        self._logger.debug(f"[RemoteStore] Saved session {name} on {self._host}")

    def load(self, name: str) -> str:
        result = self.transport.execute(f"cat {shlex.quote(self.session_path(name))}")
        if not result.ok:
            raise SessionNotFoundError(name, self._host, detail=result.stderr.strip())
        return result.stdout

    def list(self) -> list[str]:
        output = self.transport.run(f"ls -1 {shlex.quote(self.sessions_dir)} 2>/dev/null || true")
        return sorted(
            line[: -len(SESSION_SUFFIX)]
            for line in output.splitlines()
            if line.endswith(SESSION_SUFFIX) and not line.startswith(".")
        )

    def delete(self, name: str) -> None:
        paths = " ".join(
            shlex.quote(p) for p in (self.session_path(name), self.lock_path(name), self.pid_path(name))
        )
        self.transport.run(f"rm -f {paths}")
        self._logger.debug(f"[RemoteStore] Deleted session {name} on {self._host}")

    # ==================== Locking ====================

    def read_holder_pid(self, name: str) -> int | None:
        result = self.transport.execute(f"cat {shlex.quote(self.pid_path(name))} 2>/dev/null")
        if not result.ok:
            return None
        return _parse_pid(result.stdout)

    def pid_alive(self, pid: int) -> bool:
        return self.transport.check(f"kill -0 {int(pid)} 2>/dev/null")

    def acquire_lock(self, name: str, force: bool = False) -> tuple[SessionLock, LockHolder | None]:
        existing_pid = self.read_holder_pid(name)
        if existing_pid is not None:
            if self.pid_alive(existing_pid):
                if not force:
                    owner_host, acquired_at = self._recorded_owner(name)
                    raise LockedError(name, owner_host, acquired_at)
                self._logger.warning(f"[RemoteStore] Breaking lock on {name} (remote pid {existing_pid})")
                metrics.inc("lock.forced")
            else:
                self._logger.info(f"[RemoteStore] Reclaiming stale lock on {name} (remote pid {existing_pid})")
                metrics.inc("lock.stale_reclaimed")
            self.release_lock(name)

        self.transport.run(f"mkdir -p {shlex.quote(self.locks_dir)}")

        claim = SessionLock.new(holder_pid=0)
        script = build_lock_script(
            self.lock_path(name),
            self.pid_path(name),
            claim.model_dump_json(exclude={"holder_pid"}),
        )
        process = self.transport.spawn(f"bash -c {shlex.quote(script)}")
        holder = LockHolder(pid=process.pid, process=process)

        remote_pid = self._wait_for_holder_pid(name, holder)
        if remote_pid is None:
            holder.stop()
            raise LockAcquisitionError(
                f"Lock holder for '{name}' on {self._host} did not start",
                attempts=self.pid_wait_attempts,
                context={"session": name, "host": self._host},
            )

        lock = claim.model_copy(update={"holder_pid": remote_pid})
        metrics.inc("lock.acquired", {"host": self._host})
        self._logger.debug(f"[RemoteStore] Locked {name} on {self._host} (remote pid {remote_pid}, local {holder.pid})")
        return lock, holder

    def _wait_for_holder_pid(self, name: str, holder: LockHolder) -> int | None:
        for _ in range(self.pid_wait_attempts):
            self._sleep(self.pid_wait_interval)
            if not holder.alive():
                # lost the noclobber race or ssh failed
                return None
            pid = self.read_holder_pid(name)
            if pid is not None:
                return pid
        return None

    def _recorded_owner(self, name: str) -> tuple[str | None, str | None]:
        """Owner and acquisition time from the stored record, if readable."""
        try:
            record = SessionRecord.from_json(self.load(name))
        except (SessionNotFoundError, SessionFormatError):
            return None, None
        if record.lock is None:
            return None, None
        return record.lock.owner_host, record.lock.acquired_at

    def release_lock(self, name: str) -> None:
        pidfile = shlex.quote(self.pid_path(name))
        lock = shlex.quote(self.lock_path(name))
        # the old holder's EXIT trap deletes the lock files; it must be gone before a new claim
        cmd = (
            f'pid=$(cat {pidfile} 2>/dev/null); if [ -n "$pid" ]; then kill "$pid" 2>/dev/null; i=0; '
            f'while kill -0 "$pid" 2>/dev/null && [ $i -lt {self.release_wait_attempts} ]; do '
            f'sleep {LOCK_RELEASE_WAIT_INTERVAL_SECONDS}; i=$((i+1)); done; kill -9 "$pid" 2>/dev/null; fi; '
            f"rm -f {lock} {pidfile}"
        )
        try:
            result = self.transport.execute(cmd)
        except WsmuxError as e:
            self._logger.warning(f"[RemoteStore] Failed to release lock on {name}: {e}")
            metrics.inc("lock.release.error")
            return
        if not result.ok:
            self._logger.warning(f"[RemoteStore] Lock release on {name} exited {result.returncode}: {result.stderr.strip()}")
            metrics.inc("lock.release.error")

    def is_lock_valid(self, lock: SessionLock) -> bool:
        return self.pid_alive(lock.holder_pid)
