"""Managed window identification

Managed windows are recognized by an i3 mark of the form:

    _wsmux:{host}:{socket}

- the leading underscore hides the mark from the title bar
- ``host`` is ``local`` or the remote host (``user@server`` allowed)
- ``socket`` is the multiplexer socket (``ws1-001``)

The same string is used as the window's instance/app_id at spawn time, so a
freshly spawned terminal can be found by instance and then marked. Marks are
fully under our control, unlike titles which shells keep rewriting.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..config import (
    MARK_PREFIX,
    WINDOW_WAIT_INTERVAL_SECONDS,
    WINDOW_WAIT_LOG_EVERY,
    WINDOW_WAIT_MAX_ATTEMPTS,
)
from ..errors import InvalidInputError, WindowNotFoundError
from ..telemetry import get_logger, metrics
from .base import WindowManager
from .tree import WorkspaceRef, find_workspace_node, is_window, walk, window_identifiers

_logger = get_logger(__name__)

_DELIMITER = ":"


def mark_for(host: str, socket: str) -> str:
    """Build the mark (and spawn instance) for a terminal.

    Raises:
        InvalidInputError: If a part is empty or contains the delimiter
    """
    for label, value in (("host", host), ("socket", socket)):
        if not value:
            raise InvalidInputError(f"Cannot build mark: empty {label}")
        if _DELIMITER in value:
            raise InvalidInputError(f"Cannot build mark: {label} '{value}' contains '{_DELIMITER}'")
    return f"{MARK_PREFIX}{host}{_DELIMITER}{socket}"


def is_managed_mark(mark: str) -> bool:
    return mark.startswith(MARK_PREFIX)


@dataclass(frozen=True)
class WindowIdentity:
    """A managed window: container id plus the terminal it hosts.

    ``window_id`` is the i3 container id (``con_id``), which works for both
    X11 and Wayland clients. It is 0 when parsed from a bare mark.
    """

    window_id: int
    host: str
    socket: str

    @property
    def mark(self) -> str:
        return mark_for(self.host, self.socket)

    @classmethod
    def from_mark(cls, mark: str, window_id: int = 0) -> "WindowIdentity | None":
        """Parse a mark; None if it is not a well-formed managed mark."""
        if not is_managed_mark(mark):
            return None
        parts = mark[len(MARK_PREFIX):].split(_DELIMITER)
        if len(parts) != 2 or not all(parts):
            return None
        host, socket = parts
        return cls(window_id=window_id, host=host, socket=socket)

    @classmethod
    def from_node(cls, node: dict) -> "WindowIdentity | None":
        """Identity from the first managed mark on a tree node."""
        for mark in node.get("marks") or []:
            identity = cls.from_mark(mark, window_id=node.get("id") or 0)
            if identity:
                return identity
        return None


class WindowTracker:
    """Finds, marks and tears down managed windows.

    ``wait_for_window_and_mark`` is the rendezvous between "a terminal was
    asked to spawn" and "the WM created its window"; terminal startup (and,
    for remote sessions, the SSH handshake) make this asynchronous.
    """

    def __init__(
        self,
        wm: WindowManager,
        max_attempts: int = WINDOW_WAIT_MAX_ATTEMPTS,
        poll_interval: float = WINDOW_WAIT_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ):
        self.wm = wm
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._logger = logger or _logger

    def find_window(self, instance: str | None = None, window_id: int | None = None) -> int | None:
        """Container id of the first window matching ``instance`` or ``window_id``.

        ``window_id`` matches either the container id or the X11 window id.
        """
        tree = self.wm.get_tree()
        for node in walk(tree):
            if window_id is not None and window_id in (node.get("id"), node.get("window")):
                return node.get("id")
            if instance is not None and is_window(node) and instance in window_identifiers(node):
                return node.get("id")
        return None

    def apply_mark(self, identity: WindowIdentity) -> bool:
        """Add the identity's mark to its window (re-applying is harmless)."""
        return self.wm.command_on(identity.window_id, f"mark --add {identity.mark}")

    def wait_for_window_and_mark(self, instance: str, host: str, socket: str) -> int:
        """Poll until a window with ``instance`` exists, then mark it.

        Returns:
            The window's container id

        Raises:
            WindowNotFoundError: After ``max_attempts`` failed polls
        """
        for attempt in range(1, self.max_attempts + 1):
            metrics.inc("window.wait.attempts")
            con_id = self.find_window(instance=instance)
            if con_id is not None:
                identity = WindowIdentity(window_id=con_id, host=host, socket=socket)
                if not self.apply_mark(identity):
                    self._logger.warning(f"[Marks] Failed to mark window {con_id} as {identity.mark}")
                self._logger.debug(f"[Marks] {socket} -> window {con_id} (attempt {attempt})")
                return con_id

            if attempt % WINDOW_WAIT_LOG_EVERY == 0:
                self._logger.info(
                    f"[Marks] Still waiting for window '{instance}' ({attempt}/{self.max_attempts})"
                )
            if attempt < self.max_attempts:
                self._sleep(self.poll_interval)

        metrics.inc("window.wait.timeout")
        raise WindowNotFoundError(
            f"Window for '{instance}' did not appear after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            context={"instance": instance, "host": host, "socket": socket},
        )

    def collect_marked_in(self, workspace: WorkspaceRef) -> list[WindowIdentity]:
        """All managed windows in a workspace, tiling and floating."""
        tree = self.wm.get_tree()
        ws_node = find_workspace_node(tree, workspace)
        if ws_node is None:
            return []

        identities = []
        for node in walk(ws_node):
            identity = WindowIdentity.from_node(node)
            if identity:
                identities.append(identity)
        return identities

    def workspace_has_managed_windows(self, workspace: WorkspaceRef) -> bool:
        return bool(self.collect_marked_in(workspace))

    def kill_windows(self, identities: list[WindowIdentity]) -> list[WindowIdentity]:
        """Close each window; returns the ones that could not be closed."""
        failed = []
        for identity in identities:
            if not self.wm.command_on(identity.window_id, "kill"):
                self._logger.warning(f"[Marks] Failed to close window {identity.window_id} ({identity.socket})")
                failed.append(identity)
        return failed
