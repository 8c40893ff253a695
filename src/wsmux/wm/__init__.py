"""Window manager integration

- WindowManager: interface the core depends on
- I3WindowManager: i3/Sway implementation over i3ipc
- WindowIdentity, WindowTracker: managed-window marks and polling
"""

from .base import WindowManager
from .client import I3WindowManager
from .marks import WindowIdentity, WindowTracker, is_managed_mark, mark_for

__all__ = [
    "WindowManager",
    "I3WindowManager",
    "WindowIdentity",
    "WindowTracker",
    "is_managed_mark",
    "mark_for",
]
