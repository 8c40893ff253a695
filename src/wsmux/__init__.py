"""wsmux - detach and reattach i3/Sway workspaces of terminal sessions."""

__version__ = "0.1.0"
