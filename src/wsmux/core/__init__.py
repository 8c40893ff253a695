"""Core utilities shared by every component."""

from .ids import (
    ParsedSocket,
    default_session_name,
    is_local,
    make_socket_id,
    next_socket_counter,
    normalize_host,
    parse_socket_id,
    socket_label,
    validate_host,
    validate_session_name,
)

__all__ = [
    "ParsedSocket",
    "default_session_name",
    "is_local",
    "make_socket_id",
    "next_socket_counter",
    "normalize_host",
    "parse_socket_id",
    "socket_label",
    "validate_host",
    "validate_session_name",
]
