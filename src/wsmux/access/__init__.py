"""Session stores

- SessionStore: interface (persistence + process-as-mutex locking)
- LocalSessionStore: files on this machine
- RemoteSessionStore: files on a remote host, locked by a remote process
- create_store: picks one for a host
"""

from .base import LockHolder, SessionStore, pid_alive
from .factory import create_store
from .local import LocalSessionStore
from .remote import RemoteSessionStore
from .transport import SshTransport, TransportResult, ssh_options

__all__ = [
    "LockHolder",
    "SessionStore",
    "LocalSessionStore",
    "RemoteSessionStore",
    "SshTransport",
    "TransportResult",
    "create_store",
    "pid_alive",
    "ssh_options",
]
