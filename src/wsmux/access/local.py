"""Local session store

Layout under ``base_dir``:

    sessions/<name>.json    serialized SessionRecord
    locks/<name>.lock       serialized SessionLock

Writes go through a temp file in the same directory followed by a rename,
so readers never see a half-written record.
"""

import os
from pathlib import Path

from pydantic import ValidationError

from ..config import BASE_DIR, LOCAL_HOST, LOCK_SUFFIX, LOCKS_SUBDIR, SESSION_SUFFIX, SESSIONS_SUBDIR
from ..core.fs import atomic_write
from ..errors import LockedError, SessionNotFoundError
from ..session.models import SessionLock
from ..telemetry import get_logger, metrics
from .base import LockHolder, SessionStore, pid_alive

logger = get_logger(__name__)


class LocalSessionStore(SessionStore):
    """Sessions on this machine.

    The lock names the current process. Nothing keeps it alive after the
    invocation exits, so a local lock only excludes concurrent invocations.
    """

    def __init__(self, base_dir: str | Path = BASE_DIR):
        self.base_dir = Path(base_dir)
        self.sessions_dir = self.base_dir / SESSIONS_SUBDIR
        self.locks_dir = self.base_dir / LOCKS_SUBDIR

    @property
    def host(self) -> str:
        return LOCAL_HOST

    def session_path(self, name: str) -> Path:
        return self.sessions_dir / f"{name}{SESSION_SUFFIX}"

    def lock_path(self, name: str) -> Path:
        return self.locks_dir / f"{name}{LOCK_SUFFIX}"

    def save(self, name: str, data: str) -> None:
        atomic_write(self.session_path(name), data)
        logger.debug(f"[LocalStore] Saved session {name}")

    def load(self, name: str) -> str:
        try:
            return self.session_path(name).read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise SessionNotFoundError(name, self.host) from e

    def list(self) -> list[str]:
        if not self.sessions_dir.is_dir():
            return []
        return sorted(
            path.name[: -len(SESSION_SUFFIX)]
            for path in self.sessions_dir.iterdir()
            if path.is_file() and path.name.endswith(SESSION_SUFFIX) and not path.name.startswith(".")
        )

    def delete(self, name: str) -> None:
        self.session_path(name).unlink(missing_ok=True)
        self.lock_path(name).unlink(missing_ok=True)
        logger.debug(f"[LocalStore] Deleted session {name}")

    def read_lock(self, name: str) -> SessionLock | None:
        """Current lock file contents; unreadable locks count as absent."""
        path = self.lock_path(name)
        try:
            return SessionLock.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as e:
            logger.warning(f"[LocalStore] Ignoring unreadable lock {path}: {e}")
            return None

    def acquire_lock(self, name: str, force: bool = False) -> tuple[SessionLock, LockHolder | None]:
        existing = self.read_lock(name)
        if existing is not None:
            if self.is_lock_valid(existing):
                if not force:
                    raise LockedError(name, existing.owner_host, existing.acquired_at)
                logger.warning(f"[LocalStore] Breaking lock on {name} held by {existing.owner_host}")
                metrics.inc("lock.forced")
            else:
                logger.info(f"[LocalStore] Reclaiming stale lock on {name} (pid {existing.holder_pid})")
                metrics.inc("lock.stale_reclaimed")

        lock = SessionLock.new(holder_pid=os.getpid())
        atomic_write(self.lock_path(name), lock.model_dump_json())
        metrics.inc("lock.acquired", {"host": self.host})
        return lock, None

    def release_lock(self, name: str) -> None:
        try:
            self.lock_path(name).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[LocalStore] Failed to release lock on {name}: {e}")
            metrics.inc("lock.release.error")

    def is_lock_valid(self, lock: SessionLock) -> bool:
        return pid_alive(lock.holder_pid)
