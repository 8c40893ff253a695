"""Local workspace bookkeeping

Which workspaces are bound to a session, and the socket ids handed out in
each. Stored as one JSON file keyed by workspace label:

    {
      "4": {
        "session_type": "remote",
        "host": "user@devbox",
        "session_name": "work",
        "next_socket_id": 3,
        "sockets": ["ws4-001", "ws4-002"],
        "lock_holder_pid": 51234,
        "lock_holder_start": 8812345
      }
    }

A corrupt or unreadable file is logged and treated as empty; losing
bookkeeping only forgets bindings, never session data.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path

from ..config import LOCAL_HOST, STATE_FILE
from ..core.fs import atomic_write
from ..core.ids import is_local, make_socket_id
from ..telemetry import get_logger

logger = get_logger(__name__)


@dataclass
class WorkspaceBinding:
    """A workspace's link to a local or remote session."""

    session_type: str  # "local" | "remote"
    host: str = LOCAL_HOST
    session_name: str | None = None
    next_socket_id: int = 1
    sockets: list[str] = field(default_factory=list)
    lock_holder_pid: int | None = None
    lock_holder_start: int | None = None

    @property
    def is_remote(self) -> bool:
        return self.session_type == "remote"

    @classmethod
    def for_host(cls, host: str | None, session_name: str | None = None) -> "WorkspaceBinding":
        if is_local(host):
            return cls(session_type="local", host=LOCAL_HOST, session_name=session_name)
        return cls(session_type="remote", host=host, session_name=session_name)  # type: ignore[arg-type]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WorkspaceBinding":
        return cls(
            session_type=data.get("session_type", "local"),
            host=data.get("host", LOCAL_HOST),
            session_name=data.get("session_name"),
            next_socket_id=int(data.get("next_socket_id", 1)),
            sockets=list(data.get("sockets", [])),
            lock_holder_pid=data.get("lock_holder_pid"),
            lock_holder_start=data.get("lock_holder_start"),
        )


class LocalState:
    """Workspace bindings persisted in a single JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path else STATE_FILE

    def load(self) -> dict[str, WorkspaceBinding]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return {label: WorkspaceBinding.from_dict(data) for label, data in raw.items()}
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[State] Ignoring unreadable state file {self.path}: {e}")
            return {}

    def save(self, bindings: dict[str, WorkspaceBinding]) -> None:
        data = {label: binding.to_dict() for label, binding in sorted(bindings.items())}
        atomic_write(self.path, json.dumps(data, indent=2))

    def get(self, label: str) -> WorkspaceBinding | None:
        return self.load().get(label)

    def bind(self, label: str, binding: WorkspaceBinding) -> None:
        bindings = self.load()
        bindings[label] = binding
        self.save(bindings)
        logger.debug(f"[State] Bound workspace {label} -> {binding.session_type} {binding.host}")

    def clear(self, label: str) -> None:
        bindings = self.load()
        if bindings.pop(label, None) is not None:
            self.save(bindings)
            logger.debug(f"[State] Cleared workspace {label}")

    def allocate_socket(self, label: str) -> str:
        """Hand out the next socket id for a bound workspace and persist it.

        Raises:
            KeyError: If the workspace is not bound
        """
        bindings = self.load()
        binding = bindings[label]
        socket_id = make_socket_id(label, binding.next_socket_id)
        binding.next_socket_id += 1
        binding.sockets.append(socket_id)
        self.save(bindings)
        return socket_id
