"""Session lifecycle: activate → detach → attach → kill

The controller owns no state of its own. Everything durable lives in a
session store (records, locks) or in local bookkeeping (workspace bindings);
everything live is read back from the window manager.

Expected outcomes of ``attach`` (several candidate sessions, a lock held by
someone else) are reported through ``AttachResult.status``; everything else
is raised as a ``WsmuxError``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..access.base import LockHolder, SessionStore
from ..access.factory import create_store
from ..core.ids import default_session_name, next_socket_counter, normalize_host, validate_session_name
from ..errors import (
    EmptyLayoutError,
    InvalidStateError,
    LockedError,
    PartialStateError,
    SessionFormatError,
    SessionNotFoundError,
    WorkspaceBusyError,
    WsmuxError,
)
from ..layout.capture import capture, terminal_count
from ..layout.model import restore_plan
from ..telemetry import get_logger
from ..terminal import TerminalLauncher
from ..wm.base import WindowManager
from ..wm.marks import WindowTracker, mark_for
from ..wm.tree import WorkspaceRef
from .models import SessionLock, SessionRecord
from .state import LocalState, WorkspaceBinding

_logger = get_logger(__name__)

StoreFactory = Callable[[str | None], SessionStore]


class AttachStatus(Enum):
    ATTACHED = "attached"
    AMBIGUOUS = "ambiguous"
    LOCKED = "locked"


@dataclass
class TerminalResult:
    label: str
    managed: bool
    host: str | None = None
    socket: str | None = None
    window_id: int | None = None


@dataclass
class ActivateResult:
    label: str
    host: str
    session_name: str | None
    terminal: TerminalResult


@dataclass
class DetachResult:
    name: str
    host: str
    label: str
    sockets: list[str]
    cleanup_errors: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.cleanup_errors


@dataclass
class AttachResult:
    status: AttachStatus
    host: str
    name: str | None = None
    label: str | None = None
    sockets: list[str] = field(default_factory=list)
    candidates: list[str] = field(default_factory=list)
    lock: SessionLock | None = None
    owner_host: str | None = None
    acquired_at: str | None = None


@dataclass
class SessionSummary:
    name: str
    terminals: int
    lock_status: str | None = None  # "locked" | "stale" | None
    owner_host: str | None = None
    error: str | None = None


class SessionController:
    """Drives workspaces through the session lifecycle."""

    def __init__(
        self,
        wm: WindowManager,
        tracker: WindowTracker | None = None,
        launcher: TerminalLauncher | None = None,
        state: LocalState | None = None,
        store_factory: StoreFactory = create_store,
        logger: logging.Logger | None = None,
    ):
        self._logger = logger or _logger
        self.wm = wm
        self.tracker = tracker or WindowTracker(wm, logger=self._logger)
        self.launcher = launcher or TerminalLauncher(logger=self._logger)
        self.state = state or LocalState()
        self.store_factory = store_factory

    # ==================== activate / terminal ====================

    def activate(self, host: str | None = None, name: str | None = None) -> ActivateResult:
        """Bind the focused workspace to a session and open its first terminal.

        Raises:
            InvalidInputError: Malformed host or session name
            WorkspaceBusyError: The workspace already holds managed windows
        """
        host = normalize_host(host)
        if name is not None:
            validate_session_name(name)

        label, workspace = self.wm.get_focused_workspace()
        if self.tracker.workspace_has_managed_windows(workspace):
            raise WorkspaceBusyError(
                f"Workspace {label} already has managed terminals",
                context={"workspace": label},
            )

        binding = WorkspaceBinding.for_host(host, name)
        self.state.bind(label, binding)
        self._logger.info(f"[Session] Workspace {label} bound to {binding.session_type} session on {host}")

        return ActivateResult(label=label, host=host, session_name=name, terminal=self.terminal())

    def terminal(self) -> TerminalResult:
        """Open a terminal in the focused workspace.

        Managed (socket-backed and marked) if the workspace is bound, a plain
        terminal otherwise.
        """
        label, workspace = self.wm.get_focused_workspace()
        binding = self.state.get(label)
        if binding is not None and self._binding_is_stale(binding, workspace):
            self._logger.info(f"[Session] Workspace {label} lost all its terminals, dropping binding")
            self._stop_holder(binding)
            self.state.clear(label)
            binding = None

        if binding is None:
            self.launcher.launch_plain()
            return TerminalResult(label=label, managed=False)

        socket = self.state.allocate_socket(label)
        self.launcher.launch(binding.host, socket, session=binding.session_name, sockets=binding.sockets)
        window_id = self.tracker.wait_for_window_and_mark(
            mark_for(binding.host, socket), binding.host, socket
        )
        return TerminalResult(label=label, managed=True, host=binding.host, socket=socket, window_id=window_id)

    def _binding_is_stale(self, binding: WorkspaceBinding, workspace: WorkspaceRef) -> bool:
        if not binding.sockets:
            return False
        present = {identity.socket for identity in self.tracker.collect_marked_in(workspace)}
        return not present.intersection(binding.sockets)

    # ==================== detach ====================

    def detach(self, name: str | None = None) -> DetachResult:
        """Save the focused workspace's layout and close its windows.

        Sessions keep running in their multiplexer. Once the record is
        saved, later failures are collected in ``cleanup_errors`` instead of
        being raised.

        Raises:
            InvalidStateError: The workspace is not bound to a remote session
            EmptyLayoutError: No managed terminals to save
        """
        if name is not None:
            validate_session_name(name)

        label, workspace = self.wm.get_focused_workspace()
        binding = self.state.get(label)
        if binding is None or not binding.is_remote:
            raise InvalidStateError(
                f"Workspace {label} is not bound to a remote session; only remote sessions can be detached",
                context={"workspace": label},
            )

        layout = capture(self.wm.get_tree(), workspace, logger=self._logger)
        if layout is None:
            raise EmptyLayoutError(f"No managed terminals in workspace {label}", context={"workspace": label})

        session_name = name or binding.session_name or default_session_name(label)
        validate_session_name(session_name)
        store = self.store_factory(binding.host)

        record = SessionRecord(name=session_name, workspace=label, host=binding.host, layout=layout)
        store.save(session_name, record.to_json())
        self._logger.info(f"[Session] Saved {session_name} ({len(record.sockets)} terminals) to {store.display_name}")

        errors: list[str] = []
        identities = self.tracker.collect_marked_in(workspace)
        self._best_effort(errors, "close windows", lambda: self._kill_all(identities))
        self._best_effort(errors, "stop lock holder", lambda: self._stop_holder(binding))
        self._best_effort(errors, "release lock", lambda: store.release_lock(session_name))
        if binding.session_name and binding.session_name != session_name:
            self._best_effort(errors, "release lock", lambda: store.release_lock(binding.session_name))
        self._best_effort(errors, "clear bookkeeping", lambda: self.state.clear(label))

        return DetachResult(
            name=session_name,
            host=binding.host,
            label=label,
            sockets=record.sockets,
            cleanup_errors=errors,
        )

    def _kill_all(self, identities) -> None:
        failed = self.tracker.kill_windows(identities)
        if failed:
            raise InvalidStateError(
                f"{len(failed)} window(s) could not be closed",
                context={"sockets": ", ".join(identity.socket for identity in failed)},
            )

    def _stop_holder(self, binding: WorkspaceBinding) -> None:
        if binding.lock_holder_pid:
            LockHolder(binding.lock_holder_pid, start_time=binding.lock_holder_start).stop()

    def _best_effort(self, errors: list[str], step: str, action: Callable[[], None]) -> None:
        try:
            action()
        except (WsmuxError, OSError) as e:
            self._logger.warning(f"[Session] Cleanup step '{step}' failed: {e}")
            errors.append(f"{step}: {e}")

    # ==================== attach ====================

    def attach(self, host: str | None = None, name: str | None = None, force: bool = False) -> AttachResult:
        """Restore a stored session into the focused workspace.

        Raises:
            SessionNotFoundError: No sessions on the host, or ``name`` missing
            WorkspaceBusyError: The workspace already holds managed windows
            PartialStateError: Some terminals were restored before a failure,
                or all were but the locked record could not be saved; the
                lock is released either way
        """
        host = normalize_host(host)
        if name is not None:
            validate_session_name(name)

        store = self.store_factory(host)
        names = store.list()
        if not names:
            raise SessionNotFoundError(name or "*", store.host, detail="no sessions stored")
        if name is None:
            if len(names) > 1:
                return AttachResult(status=AttachStatus.AMBIGUOUS, host=store.host, candidates=names)
            name = names[0]
        elif name not in names:
            raise SessionNotFoundError(name, store.host)

        record = SessionRecord.from_json(store.load(name))

        try:
            lock, holder = store.acquire_lock(name, force=force)
        except LockedError as e:
            return AttachResult(
                status=AttachStatus.LOCKED,
                host=store.host,
                name=name,
                owner_host=e.owner_host,
                acquired_at=e.acquired_at,
            )

        label, workspace = self.wm.get_focused_workspace()
        if self.tracker.workspace_has_managed_windows(workspace):
            self._release(store, name, holder)
            raise WorkspaceBusyError(
                f"Workspace {label} already has managed terminals; switch to an empty workspace",
                context={"workspace": label, "session": name},
            )

        restored = self._replay(store, name, record, holder)

        binding = WorkspaceBinding.for_host(store.host, name)
        binding.sockets = restored
        binding.next_socket_id = next_socket_counter(label, restored)
        if holder is not None:
            binding.lock_holder_pid = holder.pid
            binding.lock_holder_start = holder.start_time

        try:
            store.save(name, record.with_lock(lock).to_json())
        except WsmuxError as e:
            # the terminals are up and stay bound to the workspace, without a holder
            self._release(store, name, holder)
            binding.lock_holder_pid = None
            binding.lock_holder_start = None
            self.state.bind(label, binding)
            raise PartialStateError(
                f"Restored all {len(restored)} terminals of '{name}' but could not record the lock: {e.message}",
                completed=restored,
                context={"session": name, "host": store.host},
            ) from e

        self.state.bind(label, binding)

        self._logger.info(f"[Session] Attached {name} from {store.display_name} to workspace {label}")
        return AttachResult(
            status=AttachStatus.ATTACHED,
            host=store.host,
            name=name,
            label=label,
            sockets=restored,
            lock=lock,
        )

    def _replay(
        self, store: SessionStore, name: str, record: SessionRecord, holder: LockHolder | None
    ) -> list[str]:
        """Spawn every terminal, applying each layout directive after its window."""
        host = store.host
        restored: list[str] = []
        try:
            for step in restore_plan(record.layout, logger=self._logger):
                self.launcher.launch(host, step.socket, session=name, sockets=record.sockets)
                self.tracker.wait_for_window_and_mark(mark_for(host, step.socket), host, step.socket)
                restored.append(step.socket)
                if step.directive and not self.wm.command(step.directive):
                    self._logger.warning(f"[Session] Layout directive '{step.directive}' had no effect")
        except WsmuxError as e:
            self._release(store, name, holder)
            raise PartialStateError(
                f"Restored {len(restored)} of {len(record.sockets)} terminals of '{name}': {e.message}",
                completed=restored,
                context={"session": name, "host": host},
            ) from e
        return restored

    def _release(self, store: SessionStore, name: str, holder: LockHolder | None) -> None:
        if holder is not None:
            try:
                holder.stop()
            except OSError as e:
                self._logger.warning(f"[Session] Failed to stop lock holder {holder.pid}: {e}")
        store.release_lock(name)

    # ==================== kill / sessions ====================

    def kill(self, name: str, host: str | None = None) -> None:
        """Delete a stored session. Running multiplexer sessions are untouched."""
        host = normalize_host(host)
        validate_session_name(name)
        store = self.store_factory(host)

        try:
            record = SessionRecord.from_json(store.load(name))
        except (SessionNotFoundError, SessionFormatError):
            record = None

        if record is not None and record.lock is not None and store.is_lock_valid(record.lock):
            self._logger.warning(
                f"[Session] Deleting {name} while it is attached on {record.lock.owner_host}"
            )

        store.delete(name)
        self._logger.info(f"[Session] Deleted {name} from {store.display_name}")

    def sessions(self, host: str | None = None) -> list[SessionSummary]:
        """Stored sessions on a host with terminal counts and lock status."""
        host = normalize_host(host)
        store = self.store_factory(host)

        summaries = []
        for name in store.list():
            try:
                record = SessionRecord.from_json(store.load(name))
            except (SessionNotFoundError, SessionFormatError) as e:
                summaries.append(SessionSummary(name=name, terminals=0, error=e.message))
                continue

            status = None
            owner = None
            if record.lock is not None:
                status = "locked" if store.is_lock_valid(record.lock) else "stale"
                owner = record.lock.owner_host
            summaries.append(
                SessionSummary(name=name, terminals=terminal_count(record.layout), lock_status=status, owner_host=owner)
            )
        return summaries
