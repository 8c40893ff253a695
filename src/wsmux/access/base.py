"""Session store interface

A store persists serialized session records for one host and arbitrates
exclusive access to them. There is no lock server: a lock is valid exactly
as long as the process named in it is alive on the store's side.

Usage:
    store = create_store("user@devbox")
    lock, holder = store.acquire_lock("work", force=False)
    ...
    store.release_lock("work")
"""

import os
import signal
import subprocess
import time
from abc import ABC, abstractmethod

from ..config import LOCK_HOLDER_STOP_TIMEOUT_SECONDS
from ..session.models import SessionLock
from ..telemetry import get_logger

logger = get_logger(__name__)


def pid_alive(pid: int) -> bool:
    """Whether a local process exists.

    ``EPERM`` means the process exists but belongs to someone else.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def process_start_time(pid: int) -> int | None:
    """Start time of a local process in clock ticks since boot, from ``/proc``.

    Together with the pid this identifies a process across pid reuse.
    Returns None when the process is gone or ``/proc`` is unavailable.
    """
    try:
        with open(f"/proc/{pid}/stat", encoding="utf-8") as f:
            stat = f.read()
    except OSError:
        return None
    # comm may contain spaces and parentheses; fields resume after the last ")"
    fields = stat[stat.rfind(")") + 2:].split()
    try:
        return int(fields[19])
    except (IndexError, ValueError):
        return None


class LockHolder:
    """Local process that keeps a lock alive for as long as it runs.

    ``process`` is set when the holder was spawned in this invocation; later
    invocations only know the ``pid`` and ``start_time`` recorded in workspace
    bookkeeping, and never signal a pid whose start time no longer matches.
    """

    def __init__(self, pid: int, process: subprocess.Popen | None = None, start_time: int | None = None):
        self.pid = pid
        self.process = process
        if start_time is None and process is not None:
            start_time = process_start_time(pid)
        self.start_time = start_time

    def is_same_process(self) -> bool:
        """Whether ``pid`` still names the process that was recorded."""
        return self.start_time is not None and process_start_time(self.pid) == self.start_time

    def alive(self) -> bool:
        if self.process is not None:
            return self.process.poll() is None
        return pid_alive(self.pid) and self.is_same_process()

    def stop(self, timeout: float = LOCK_HOLDER_STOP_TIMEOUT_SECONDS) -> None:
        """Terminate the holder, escalating to SIGKILL after ``timeout``."""
        if self.process is not None:
            if self.process.poll() is not None:
                return
            self.process.terminate()
            try:
                self.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"[Lock] Holder {self.pid} ignored SIGTERM, killing")
                self.process.kill()
                self.process.wait()
            return

        if not self.is_same_process():
            logger.warning(f"[Lock] Holder {self.pid} is gone or its pid was reused, not signalling")
            return
        if not self._signal(signal.SIGTERM):
            return
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not pid_alive(self.pid) or not self.is_same_process():
                return
            time.sleep(0.05)
        logger.warning(f"[Lock] Holder {self.pid} ignored SIGTERM, killing")
        self._signal(signal.SIGKILL)

    def _signal(self, sig: int) -> bool:
        try:
            os.kill(self.pid, sig)
        except ProcessLookupError:
            return False
        return True

    def __repr__(self) -> str:
        return f"LockHolder(pid={self.pid}, start_time={self.start_time})"


class SessionStore(ABC):
    """Persistence and locking for the sessions of one host."""

    @property
    @abstractmethod
    def host(self) -> str:
        """Host the sessions live on (``local`` or ``[user@]host``)."""

    @property
    def display_name(self) -> str:
        return self.host

    @abstractmethod
    def save(self, name: str, data: str) -> None:
        """Persist a serialized record, replacing any previous one atomically."""

    @abstractmethod
    def load(self, name: str) -> str:
        """Read a serialized record.

        Raises:
            SessionNotFoundError: If no record exists under ``name``
        """

    @abstractmethod
    def list(self) -> list[str]:
        """Names of all stored sessions, sorted."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove a record and its lock files; missing records are not an error."""

    @abstractmethod
    def acquire_lock(self, name: str, force: bool = False) -> tuple[SessionLock, LockHolder | None]:
        """Take the session lock.

        A stale lock (dead holder) is reclaimed silently; ``force`` also
        overrides a valid one.

        Returns:
            The new lock and, if the lock needs a process kept alive, its
            local holder

        Raises:
            LockedError: A valid lock exists and ``force`` is False
            LockAcquisitionError: The holder did not come up in time
        """

    @abstractmethod
    def release_lock(self, name: str) -> None:
        """Drop the lock. Best effort: failures are logged, never raised."""

    @abstractmethod
    def is_lock_valid(self, lock: SessionLock) -> bool:
        """Whether the lock's holder process is still alive."""
