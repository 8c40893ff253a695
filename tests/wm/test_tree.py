"""Tests for wm.tree helpers"""

from wsmux.wm.tree import find_workspace_node, is_window, walk, window_identifiers, workspace_number


class TestWalk:
    def test_tiling_before_floating(self):
        tree = {
            "id": 1,
            "nodes": [{"id": 2, "nodes": [{"id": 3}]}],
            "floating_nodes": [{"id": 4}],
        }
        assert [node["id"] for node in walk(tree)] == [1, 2, 3, 4]

    def test_missing_lists(self):
        assert [node["id"] for node in walk({"id": 1, "nodes": None})] == [1]


class TestWorkspaceNumber:
    def test_num(self):
        assert workspace_number({"num": 3, "name": "3"}) == 3

    def test_name_prefix(self):
        assert workspace_number({"num": -1, "name": "7:mail"}) == 7

    def test_named_workspace(self):
        assert workspace_number({"num": -1, "name": "web"}) is None

    def test_find(self):
        ws = {"type": "workspace", "num": 2, "name": "2"}
        tree = {"type": "root", "nodes": [{"type": "output", "nodes": [ws]}]}
        assert find_workspace_node(tree, 2) is ws
        assert find_workspace_node(tree, 5) is None

    def test_find_by_name(self):
        numbered = {"type": "workspace", "num": 2, "name": "2"}
        named = {"type": "workspace", "num": -1, "name": "web"}
        tree = {"type": "root", "nodes": [{"type": "output", "nodes": [numbered, named]}]}
        assert find_workspace_node(tree, "web") is named
        assert find_workspace_node(tree, "2") is numbered
        assert find_workspace_node(tree, -1) is None


class TestWindowIdentifiers:
    def test_x11(self):
        node = {"window": 123, "window_properties": {"instance": "inst", "class": "Cls", "title": "t"}}
        assert window_identifiers(node) == {"inst", "Cls"}
        assert is_window(node)

    def test_wayland(self):
        node = {"app_id": "foot"}
        assert window_identifiers(node) == {"foot"}
        assert is_window(node)

    def test_container(self):
        assert window_identifiers({"nodes": []}) == set()
        assert not is_window({"window": None, "nodes": []})
