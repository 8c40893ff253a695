"""Capture a workspace's live layout from the WM tree."""

import logging

from ..telemetry import get_logger
from ..wm.marks import WindowIdentity
from ..wm.tree import WorkspaceRef, find_workspace_node, iter_children
from .model import ContainerKind, ContainerNode, LayoutNode, TerminalNode, container

_logger = get_logger(__name__)


def capture(tree: dict, workspace: WorkspaceRef, logger: logging.Logger | None = None) -> LayoutNode | None:
    """Build a layout tree from the managed windows in a workspace.

    Unmarked windows are ignored and containers left without children are
    pruned, so a workspace mixing managed and unmanaged windows captures only
    the managed ones. Floating windows are appended after the tiling ones.

    Returns:
        The layout, or None if the workspace is missing or has no managed
        terminals
    """
    logger = logger or _logger
    ws_node = find_workspace_node(tree, workspace)
    if ws_node is None:
        logger.debug(f"[Capture] Workspace {workspace} not found in tree")
        return None

    seen: set[str] = set()
    return _capture_node(ws_node, seen, logger)


def _capture_node(node: dict, seen: set[str], logger: logging.Logger) -> LayoutNode | None:
    identity = WindowIdentity.from_node(node)
    if identity is not None:
        if identity.socket in seen:
            logger.warning(f"[Capture] Socket {identity.socket} marked on several windows, keeping the first")
            return None
        seen.add(identity.socket)
        return TerminalNode(socket=identity.socket, percent=node.get("percent"))

    children = []
    for child in iter_children(node):
        captured = _capture_node(child, seen, logger)
        if captured is not None:
            children.append(captured)

    if not children:
        return None

    kind = ContainerKind.from_wm_layout(node.get("layout"))
    return container(kind, children, percent=node.get("percent"))


def terminal_count(node: LayoutNode | None) -> int:
    if node is None:
        return 0
    if isinstance(node, ContainerNode):
        return sum(terminal_count(child) for child in node.children)
    return 1
