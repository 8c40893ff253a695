"""Persisted session records

Wire format (JSON, one file per session):

    {
      "version": 1,
      "name": "work",
      "workspace": "4",
      "host": "user@devbox",
      "layout": {"type": "hsplit", "children": [...]},
      "lock": {"owner_host": "laptop", "acquired_at": "...", "nonce": "...", "holder_pid": 4242}
    }

``lock`` is null while the session is detached.
"""

import json
import socket
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import SESSION_FORMAT_VERSION
from ..errors import SessionFormatError
from ..layout.model import LayoutNode, duplicate_sockets, layout_to_dict, sockets


def utc_now() -> str:
    """Current time as RFC 3339 UTC, second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class SessionLock(BaseModel):
    """Who holds a session and which process keeps the claim alive."""

    owner_host: str
    acquired_at: str
    nonce: str
    holder_pid: int

    @classmethod
    def new(cls, holder_pid: int, owner_host: str | None = None) -> "SessionLock":
        return cls(
            owner_host=owner_host or socket.gethostname(),
            acquired_at=utc_now(),
            nonce=uuid.uuid4().hex,
            holder_pid=holder_pid,
        )


class SessionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = SESSION_FORMAT_VERSION
    name: str = Field(min_length=1)
    workspace: str
    host: str
    layout: LayoutNode
    lock: SessionLock | None = None

    @property
    def sockets(self) -> list[str]:
        return sockets(self.layout)

    def with_lock(self, lock: SessionLock | None) -> "SessionRecord":
        return self.model_copy(update={"lock": lock})

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "name": self.name,
            "workspace": self.workspace,
            "host": self.host,
            "layout": layout_to_dict(self.layout),
            "lock": self.lock.model_dump() if self.lock else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text: str) -> "SessionRecord":
        """Parse and validate a stored record.

        Raises:
            SessionFormatError: Malformed JSON, unknown layout node types,
                duplicate sockets, or a format version newer than ours
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SessionFormatError(f"Session record is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SessionFormatError("Session record must be a JSON object")

        version = data.get("version", 1)
        if not isinstance(version, int) or version > SESSION_FORMAT_VERSION:
            raise SessionFormatError(
                f"Unsupported session format version {version!r} "
                f"(this wsmux reads up to {SESSION_FORMAT_VERSION})",
                context={"session": data.get("name")},
            )
        data["version"] = version

        try:
            record = cls.model_validate(data)
        except ValidationError as e:
            raise SessionFormatError(
                f"Invalid session record: {e.error_count()} validation error(s)",
                context={"session": data.get("name"), "detail": str(e)},
            ) from e

        dupes = duplicate_sockets(record.layout)
        if dupes:
            raise SessionFormatError(
                f"Invalid session record: duplicate sockets {dupes}",
                context={"session": record.name},
            )
        return record
