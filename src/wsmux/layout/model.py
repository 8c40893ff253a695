"""Layout tree model

A captured workspace is a tree of containers (hsplit, vsplit, tabbed,
stacked) whose leaves are managed terminals. The tree is persisted as JSON
with an explicit ``type`` discriminant on every node:

    {"type": "hsplit", "children": [
        {"type": "terminal", "socket": "ws4-001", "percent": 0.5},
        {"type": "vsplit", "percent": 0.5, "children": [...]}
    ]}

Restoring is the inverse of capture: spawn terminal #1, then for each
following terminal apply the next directive from ``commands_to_reproduce``
before spawning it. ``restore_plan`` pairs sockets with directives in that
order.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import SessionFormatError
from ..telemetry import get_logger

_logger = get_logger(__name__)


class ContainerKind(Enum):
    """Container kinds, valued by their JSON discriminant."""

    HSPLIT = "hsplit"
    VSPLIT = "vsplit"
    TABBED = "tabbed"
    STACKED = "stacked"

    @classmethod
    def from_wm_layout(cls, layout: str | None) -> "ContainerKind":
        """Map an i3/Sway ``layout`` field to a kind.

        Unrecognized values (including ``output``, ``dockarea``, ``none``)
        describe live WM state only and fall back to VSPLIT.
        """
        mapping = {
            "splith": cls.HSPLIT,
            "splitv": cls.VSPLIT,
            "tabbed": cls.TABBED,
            "stacked": cls.STACKED,
        }
        return mapping.get(layout or "", cls.VSPLIT)

    @property
    def is_split(self) -> bool:
        return self in (ContainerKind.HSPLIT, ContainerKind.VSPLIT)

    @property
    def directive(self) -> str:
        """WM command that produces this kind for the focused window."""
        return {
            ContainerKind.HSPLIT: "split h",
            ContainerKind.VSPLIT: "split v",
            ContainerKind.TABBED: "layout tabbed",
            ContainerKind.STACKED: "layout stacking",
        }[self]


class TerminalNode(BaseModel):
    """Leaf: one managed terminal, identified by its multiplexer socket."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["terminal"] = "terminal"
    socket: str = Field(min_length=1)
    percent: float | None = None


class ContainerNode(BaseModel):
    """Split/tab/stack container with at least one child."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["hsplit", "vsplit", "tabbed", "stacked"]
    children: list["LayoutNode"] = Field(min_length=1)
    percent: float | None = None

    @property
    def kind(self) -> ContainerKind:
        return ContainerKind(self.type)


LayoutNode = Annotated[Union[ContainerNode, TerminalNode], Field(discriminator="type")]

ContainerNode.model_rebuild()

_layout_adapter: TypeAdapter = TypeAdapter(LayoutNode)


# ==================== Constructors ====================


def terminal(socket: str, percent: float | None = None) -> TerminalNode:
    return TerminalNode(socket=socket, percent=percent)


def container(
    kind: ContainerKind, children: list["LayoutNode"], percent: float | None = None
) -> ContainerNode:
    return ContainerNode(type=kind.value, children=children, percent=percent)


def hsplit(*children: "LayoutNode", percent: float | None = None) -> ContainerNode:
    return container(ContainerKind.HSPLIT, list(children), percent)


def vsplit(*children: "LayoutNode", percent: float | None = None) -> ContainerNode:
    return container(ContainerKind.VSPLIT, list(children), percent)


def tabbed(*children: "LayoutNode", percent: float | None = None) -> ContainerNode:
    return container(ContainerKind.TABBED, list(children), percent)


def stacked(*children: "LayoutNode", percent: float | None = None) -> ContainerNode:
    return container(ContainerKind.STACKED, list(children), percent)


# ==================== Algorithms ====================


def sockets(node: "LayoutNode") -> list[str]:
    """All terminal sockets in depth-first, left-to-right order."""
    if isinstance(node, TerminalNode):
        return [node.socket]
    result: list[str] = []
    for child in node.children:
        result.extend(sockets(child))
    return result


def commands_to_reproduce(node: "LayoutNode", depth: int = 0) -> list[str]:
    """WM directives that rebuild ``node`` when interleaved with spawns.

    Splits emit their directive before every child after the first.
    Tabbed/stacked containers emit one layout directive before their
    children, except at the workspace root (depth 0), which picks up its
    layout implicitly.
    """
    if isinstance(node, TerminalNode):
        return []

    kind = node.kind
    commands: list[str] = []
    if kind.is_split:
        for index, child in enumerate(node.children):
            if index > 0:
                commands.append(kind.directive)
            commands.extend(commands_to_reproduce(child, depth + 1))
    else:
        if depth > 0:
            commands.append(kind.directive)
        for child in node.children:
            commands.extend(commands_to_reproduce(child, depth + 1))
    return commands


@dataclass
class RestoreStep:
    """Spawn ``socket``, wait for its window, then run ``directive``."""

    socket: str
    directive: str | None = None


def restore_plan(node: "LayoutNode", logger: logging.Logger | None = None) -> list[RestoreStep]:
    """Pair socket *i* with directive *i*.

    Directives left over after the last socket have no window to act on and
    are dropped.
    """
    logger = logger or _logger
    socket_ids = sockets(node)
    commands = commands_to_reproduce(node)

    steps = [
        RestoreStep(socket=socket_id, directive=commands[i] if i < len(commands) else None)
        for i, socket_id in enumerate(socket_ids)
    ]
    if len(commands) > len(socket_ids):
        logger.debug(f"[Layout] Dropping trailing directives: {commands[len(socket_ids):]}")
    return steps


def duplicate_sockets(node: "LayoutNode") -> list[str]:
    """Sockets that appear more than once in the tree."""
    seen: set[str] = set()
    dupes: list[str] = []
    for socket_id in sockets(node):
        if socket_id in seen and socket_id not in dupes:
            dupes.append(socket_id)
        seen.add(socket_id)
    return dupes


# ==================== Serialization ====================


def layout_to_dict(node: "LayoutNode") -> dict:
    """Serialize to the JSON-ready dict form (absent percents omitted)."""
    return node.model_dump(exclude_none=True)


def layout_from_dict(data: dict) -> "LayoutNode":
    """Parse a serialized layout.

    Unknown ``type`` values, empty containers and duplicate sockets are
    rejected rather than defaulted.

    Raises:
        SessionFormatError: If the data is not a valid layout
    """
    try:
        node = _layout_adapter.validate_python(data)
    except ValidationError as e:
        raise SessionFormatError(f"Invalid layout: {e.error_count()} validation error(s)", context={"detail": str(e)}) from e

    dupes = duplicate_sockets(node)
    if dupes:
        raise SessionFormatError(f"Invalid layout: duplicate sockets {dupes}")
    return node
