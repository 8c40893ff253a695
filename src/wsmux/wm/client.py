"""i3/Sway IPC client built on i3ipc."""

import logging

import i3ipc

from ..errors import WindowManagerError
from ..telemetry import get_logger
from .base import WindowManager
from .tree import WorkspaceRef

_logger = get_logger(__name__)


class I3WindowManager(WindowManager):
    """Window manager backed by an ``i3ipc.Connection``.

    i3ipc locates the socket from ``I3SOCK``/``SWAYSOCK`` (or by asking the
    running WM), so one class serves both i3 and Sway.
    """

    def __init__(
        self,
        connection: i3ipc.Connection | None = None,
        socket_path: str | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize I3WindowManager.

        Args:
            connection: Existing connection (tests inject a mock here)
            socket_path: Optional IPC socket path; autodetected if None
            logger: Logger to use
        """
        self._logger = logger or _logger
        if connection is None:
            try:
                connection = i3ipc.Connection(socket_path=socket_path)
            except Exception as e:
                raise WindowManagerError(
                    "No running window manager (i3 or Sway) detected. "
                    "Ensure I3SOCK or SWAYSOCK is set.",
                    context={"socket_path": socket_path, "detail": str(e)},
                ) from e
        self._conn = connection

    @property
    def name(self) -> str:
        version = self._conn.get_version()
        human = getattr(version, "human_readable", "") or ""
        return "sway" if "sway" in human.lower() else "i3"

    def get_tree(self) -> dict:
        try:
            return self._conn.get_tree().ipc_data
        except Exception as e:
            raise WindowManagerError("get_tree failed", context={"detail": str(e)}) from e

    def command(self, cmd: str) -> bool:
        try:
            replies = self._conn.command(cmd)
        except Exception as e:
            raise WindowManagerError(f"Command failed: {cmd}", context={"detail": str(e)}) from e

        if any(reply.success for reply in replies):
            return True

        errors = [reply.error for reply in replies if getattr(reply, "error", None)]
        self._logger.debug(f"[WM] Command had no successful outcome: {cmd}: {errors}")
        return False

    def get_focused_workspace(self) -> tuple[str, WorkspaceRef]:
        for ws in self._conn.get_workspaces():
            if ws.focused:
                # named workspaces without a number report num -1
                if isinstance(ws.num, int) and ws.num >= 0:
                    return str(ws.num), ws.num
                return ws.name, ws.name
        raise WindowManagerError("No focused workspace found")
