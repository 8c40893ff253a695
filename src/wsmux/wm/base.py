"""Window manager interface

The core needs exactly three things from the window manager:

1. the full container tree (``get_tree``)
2. a way to run commands (``command``)
3. the focused workspace (``get_focused_workspace``)

Usage:
    wm = I3WindowManager()
    label, workspace = wm.get_focused_workspace()
    tree = wm.get_tree()
    wm.command("split h")
"""

from abc import ABC, abstractmethod

from .tree import WorkspaceRef


class WindowManager(ABC):
    """Window manager abstraction (i3 and Sway share one IPC protocol)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g. "i3", "sway")."""

    @abstractmethod
    def get_tree(self) -> dict:
        """Return the full layout tree as ``get_tree`` JSON."""

    @abstractmethod
    def command(self, cmd: str) -> bool:
        """Run a WM command.

        Returns:
            True if at least one outcome succeeded. Criteria that match no
            window count as failure.
        """

    @abstractmethod
    def get_focused_workspace(self) -> tuple[str, WorkspaceRef]:
        """Return ``(label, workspace)`` for the focused workspace.

        ``workspace`` is the number, or the name for a workspace without one.
        ``label`` is its string form; it names local bookkeeping entries and
        socket ids.

        Raises:
            WindowManagerError: If no workspace is focused
        """

    def command_on(self, con_id: int, cmd: str) -> bool:
        """Run ``cmd`` against a single container by id."""
        return self.command(f'[con_id="{con_id}"] {cmd}')
