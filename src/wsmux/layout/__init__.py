"""Layout tree: model, capture from the WM and restore directives."""

from .capture import capture, terminal_count
from .model import (
    ContainerKind,
    ContainerNode,
    LayoutNode,
    RestoreStep,
    TerminalNode,
    commands_to_reproduce,
    layout_from_dict,
    layout_to_dict,
    restore_plan,
    sockets,
)

__all__ = [
    "ContainerKind",
    "ContainerNode",
    "LayoutNode",
    "RestoreStep",
    "TerminalNode",
    "capture",
    "commands_to_reproduce",
    "layout_from_dict",
    "layout_to_dict",
    "restore_plan",
    "sockets",
    "terminal_count",
]
