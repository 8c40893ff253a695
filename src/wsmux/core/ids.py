"""Identifier utilities

Validation and formatting of the identifiers that end up in shell commands,
file names and window marks:

- session names:  ``my-session``, ``ws4``
- hosts:          ``devbox``, ``user@devbox.example.com``, ``local``
- socket ids:     ``ws4-001``, ``wsweb-002`` (``ws{label}-{counter:03}``)

Everything here is validated once at the CLI boundary; internal code trusts
the values afterwards.
"""

import re
from dataclasses import dataclass

from ..config import LOCAL_HOST
from ..errors import InvalidInputError

_SESSION_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_USER_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_SOCKET_RE = re.compile(r"^ws(?P<label>.+)-(?P<counter>\d{3,})$")
_UNSAFE_LABEL_RE = re.compile(r"[^A-Za-z0-9_.-]")
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_-]")


def validate_session_name(name: str) -> str:
    """Validate a session name.

    Only alphanumerics, hyphens and underscores are allowed.

    Raises:
        InvalidInputError: If the name is empty or contains other characters
    """
    if not name:
        raise InvalidInputError("Session name cannot be empty")
    if not _SESSION_NAME_RE.match(name):
        raise InvalidInputError(
            f"Invalid session name '{name}': only alphanumeric characters, "
            "hyphens, and underscores are allowed"
        )
    return name


def validate_host(host: str) -> str:
    """Validate a host string (``hostname`` or ``user@hostname``).

    Raises:
        InvalidInputError: If any part is empty or contains unsafe characters
    """
    if not host:
        raise InvalidInputError("Remote host cannot be empty")

    user, sep, hostname = host.partition("@")
    if not sep:
        user, hostname = "", host
    elif not user:
        raise InvalidInputError(f"Username cannot be empty in '{host}'")
    elif not _USER_RE.match(user):
        raise InvalidInputError(
            f"Invalid username in '{host}': only alphanumeric, hyphens, and underscores allowed"
        )

    if not hostname:
        raise InvalidInputError(f"Hostname cannot be empty in '{host}'")
    if not _HOSTNAME_RE.match(hostname):
        raise InvalidInputError(
            f"Invalid hostname in '{host}': only alphanumeric, hyphens, dots, and underscores allowed"
        )
    return host


def is_local(host: str | None) -> bool:
    """True for ``None`` and the reserved ``local`` host."""
    return host is None or host == LOCAL_HOST


def normalize_host(host: str | None) -> str:
    """Map ``None`` to ``local`` and validate anything else."""
    if is_local(host):
        return LOCAL_HOST
    return validate_host(host)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ParsedSocket:
    """Parsed socket id."""

    label: str
    counter: int

    def __str__(self) -> str:
        return make_socket_id(self.label, self.counter)


def socket_label(label: str) -> str:
    """Workspace label as used in socket ids.

    Named workspaces can hold spaces, colons or quotes, none of which may
    appear in a mark or an abduco socket path; they become ``_``.
    """
    return _UNSAFE_LABEL_RE.sub("_", label)


def default_session_name(label: str) -> str:
    """Session name used when detaching workspace ``label`` without one, e.g. ``ws4``."""
    return "ws" + _UNSAFE_NAME_RE.sub("_", label)


def make_socket_id(label: str, counter: int) -> str:
    """Format a socket id, e.g. ``make_socket_id("4", 1) == "ws4-001"``."""
    return f"ws{socket_label(label)}-{counter:03}"


def parse_socket_id(socket_id: str) -> ParsedSocket | None:
    """Parse ``ws{label}-{counter}``; returns None for foreign formats."""
    match = _SOCKET_RE.match(socket_id)
    if not match:
        return None
    return ParsedSocket(label=match.group("label"), counter=int(match.group("counter")))


def next_socket_counter(label: str, sockets: list[str]) -> int:
    """Counter to use after restoring ``sockets`` into workspace ``label``.

    Continues past both the number of restored sockets and the highest
    counter already used under this label, so ids are never reused.
    """
    highest = len(sockets)
    for socket_id in sockets:
        parsed = parse_socket_id(socket_id)
        if parsed and parsed.label == socket_label(label):
            highest = max(highest, parsed.counter)
    return highest + 1
