"""Helpers for walking the i3/Sway ``get_tree`` JSON.

Nodes are plain dicts as returned by the IPC. Children come from two lists,
``nodes`` and ``floating_nodes``; both are always visited, tiling first.
"""

from collections.abc import Iterator


def iter_children(node: dict) -> Iterator[dict]:
    """Tiling children followed by floating children."""
    yield from node.get("nodes") or []
    yield from node.get("floating_nodes") or []


def walk(node: dict) -> Iterator[dict]:
    """Depth-first pre-order traversal."""
    yield node
    for child in iter_children(node):
        yield from walk(child)


def workspace_number(node: dict) -> int | None:
    """Workspace number from ``num``, falling back to the ``"4:web"`` name prefix."""
    num = node.get("num")
    if isinstance(num, int) and num >= 0:
        return num
    name = node.get("name") or ""
    prefix = name.split(":", 1)[0]
    try:
        return int(prefix)
    except ValueError:
        return None


WorkspaceRef = int | str
"""A workspace number, or the name of a workspace that has none."""


def find_workspace_node(tree: dict, workspace: WorkspaceRef) -> dict | None:
    """Find a workspace container by number, or by exact name for a string."""
    for node in walk(tree):
        if node.get("type") != "workspace":
            continue
        if isinstance(workspace, str):
            if node.get("name") == workspace:
                return node
        elif workspace_number(node) == workspace:
            return node
    return None


def window_identifiers(node: dict) -> set[str]:
    """Instance/class/app_id strings a window can be matched by.

    X11 windows (i3, XWayland) carry ``window_properties``; native Wayland
    windows on Sway carry ``app_id``.
    """
    identifiers: set[str] = set()
    props = node.get("window_properties") or {}
    for key in ("instance", "class"):
        value = props.get(key)
        if value:
            identifiers.add(value)
    app_id = node.get("app_id")
    if app_id:
        identifiers.add(app_id)
    return identifiers


def is_window(node: dict) -> bool:
    """True for leaf containers that hold an actual client window."""
    return bool(node.get("window")) or bool(node.get("app_id")) or bool(node.get("window_properties"))
