"""Session records and workspace bookkeeping.

The lifecycle controller lives in ``wsmux.session.controller`` and is not
re-exported here; it depends on the stores, which depend on these models.
"""

from .models import SessionLock, SessionRecord
from .state import LocalState, WorkspaceBinding

__all__ = [
    "SessionLock",
    "SessionRecord",
    "LocalState",
    "WorkspaceBinding",
]
