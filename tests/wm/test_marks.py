"""Tests for wm.marks - mark encoding and the window tracker"""

from unittest.mock import MagicMock

import pytest

from fakes import FakeWindowManager
from wsmux.errors import InvalidInputError, NotFoundError, WaitTimeoutError, WindowNotFoundError
from wsmux.telemetry import metrics
from wsmux.wm.marks import WindowIdentity, WindowTracker, is_managed_mark, mark_for

HOST = "user@devbox"


class TestMarkFor:
    """Test mark encoding"""

    def test_format(self):
        assert mark_for("local", "ws1-001") == "_wsmux:local:ws1-001"
        assert mark_for(HOST, "ws4-002") == "_wsmux:user@devbox:ws4-002"

    def test_deterministic(self):
        assert mark_for(HOST, "ws1-001") == mark_for(HOST, "ws1-001")

    @pytest.mark.parametrize("host,socket", [("", "ws1-001"), (HOST, ""), ("a:b", "ws1-001"), (HOST, "ws:1")])
    def test_rejects_bad_parts(self, host, socket):
        with pytest.raises(InvalidInputError):
            mark_for(host, socket)

    def test_is_managed_mark(self):
        assert is_managed_mark("_wsmux:local:ws1-001")
        assert not is_managed_mark("wsmux:local:ws1-001")


class TestFromMark:
    """Test mark parsing"""

    @pytest.mark.parametrize("host", ["local", "devbox", "user@devbox.example.com"])
    def test_round_trip(self, host):
        identity = WindowIdentity.from_mark(mark_for(host, "ws3-010"))
        assert (identity.host, identity.socket) == (host, "ws3-010")
        assert identity.window_id == 0

    @pytest.mark.parametrize(
        "mark",
        [
            "",
            "scratchpad",
            "_wsmu:local:ws1-001",
            "_WSMUX:local:ws1-001",
            "x_wsmux:local:ws1-001",
            "_wsmux:",
            "_wsmux:local",
            "_wsmux:local:",
            "_wsmux::ws1-001",
            "_wsmux:a:b:c",
        ],
    )
    def test_rejects(self, mark):
        assert WindowIdentity.from_mark(mark) is None

    def test_from_node_uses_first_managed_mark(self):
        node = {"id": 42, "marks": ["foo", "_wsmux:local:ws1-001", "_wsmux:local:ws1-002"]}
        identity = WindowIdentity.from_node(node)
        assert identity == WindowIdentity(window_id=42, host="local", socket="ws1-001")

    def test_from_node_without_marks(self):
        assert WindowIdentity.from_node({"id": 1}) is None

    def test_identity_mark(self):
        assert WindowIdentity(7, HOST, "ws1-001").mark == "_wsmux:user@devbox:ws1-001"


class TestFindWindow:
    """Test window lookup"""

    def test_by_instance(self, wm, tracker):
        con_id = wm.add_window("target")
        wm.add_window("other")
        assert tracker.find_window(instance="target") == con_id

    def test_by_class(self, wm, tracker):
        wm.add_window("target")
        assert tracker.find_window(instance="Alacritty") is not None

    def test_by_app_id(self, wm, tracker):
        ws = wm.workspaces[1]
        ws["nodes"].append({"id": 77, "app_id": "foot-term", "nodes": [], "floating_nodes": [], "marks": []})
        assert tracker.find_window(instance="foot-term") == 77

    def test_by_window_id(self, wm, tracker):
        con_id = wm.add_window("target")
        assert tracker.find_window(window_id=con_id) == con_id
        assert tracker.find_window(window_id=con_id + 10000) == con_id

    def test_floating_searched(self, wm, tracker):
        con_id = wm.add_window("floater", floating=True)
        assert tracker.find_window(instance="floater") == con_id

    def test_not_found(self, tracker):
        assert tracker.find_window(instance="nothing") is None


class TestWaitForWindowAndMark:
    """Test the spawn/window rendezvous"""

    def test_immediate(self, wm, tracker):
        mark = mark_for(HOST, "ws1-001")
        con_id = wm.add_window(mark)

        assert tracker.wait_for_window_and_mark(mark, HOST, "ws1-001") == con_id
        assert wm.windows_in(1)[0]["marks"] == [mark]
        assert metrics.get_counter("window.wait.attempts") == 1

    def test_window_appears_late(self, wm):
        mark = mark_for(HOST, "ws1-001")
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 3:
                wm.add_window(mark)

        tracker = WindowTracker(wm, max_attempts=10, poll_interval=0.25, sleep=sleep)
        tracker.wait_for_window_and_mark(mark, HOST, "ws1-001")

        assert sleeps == [0.25, 0.25, 0.25]
        assert metrics.get_counter("window.wait.attempts") == 4

    def test_remark_is_harmless(self, wm, tracker):
        mark = mark_for(HOST, "ws1-001")
        wm.add_window(mark, marks=[mark])
        tracker.wait_for_window_and_mark(mark, HOST, "ws1-001")
        assert wm.windows_in(1)[0]["marks"] == [mark]

    def test_timeout(self, wm):
        sleep = MagicMock()
        tracker = WindowTracker(wm, max_attempts=5, poll_interval=0.1, sleep=sleep)

        with pytest.raises(WindowNotFoundError) as exc_info:
            tracker.wait_for_window_and_mark("_wsmux:local:ws1-009", "local", "ws1-009")

        assert exc_info.value.attempts == 5
        assert exc_info.value.context["socket"] == "ws1-009"
        assert sleep.call_count == 4
        assert metrics.get_counter("window.wait.timeout") == 1

    def test_timeout_is_not_found_and_timeout(self):
        assert issubclass(WindowNotFoundError, NotFoundError)
        assert issubclass(WindowNotFoundError, WaitTimeoutError)

    def test_progress_logged(self, wm):
        logger = MagicMock()
        tracker = WindowTracker(wm, max_attempts=25, sleep=lambda _: None, logger=logger)

        with pytest.raises(WindowNotFoundError):
            tracker.wait_for_window_and_mark("missing", "local", "ws1-001")

        assert logger.info.call_count == 2

    def test_mark_failure_logged_not_raised(self, wm):
        mark = mark_for(HOST, "ws1-001")
        con_id = wm.add_window(mark)
        wm.failing_commands.add("mark")
        logger = MagicMock()
        tracker = WindowTracker(wm, sleep=lambda _: None, logger=logger)

        assert tracker.wait_for_window_and_mark(mark, HOST, "ws1-001") == con_id
        logger.warning.assert_called_once()


class TestCollectAndKill:
    """Test reverse lookup and teardown"""

    def test_collect_marked_in(self, wm, tracker):
        wm.add_managed_window(HOST, "ws1-001")
        wm.add_window("firefox")
        wm.add_managed_window(HOST, "ws1-002", floating=True)
        wm.add_managed_window(HOST, "ws2-001", workspace=2)

        identities = tracker.collect_marked_in(1)

        assert [identity.socket for identity in identities] == ["ws1-001", "ws1-002"]
        assert all(identity.window_id for identity in identities)

    def test_collect_missing_workspace(self, tracker):
        assert tracker.collect_marked_in(42) == []

    def test_workspace_has_managed_windows(self, wm, tracker):
        wm.add_window("firefox")
        assert not tracker.workspace_has_managed_windows(1)
        wm.add_managed_window("local", "ws1-001")
        assert tracker.workspace_has_managed_windows(1)

    def test_kill_windows(self, wm, tracker):
        wm.add_managed_window(HOST, "ws1-001")
        wm.add_managed_window(HOST, "ws1-002")
        wm.add_window("firefox")

        failed = tracker.kill_windows(tracker.collect_marked_in(1))

        assert failed == []
        assert [w["window_properties"]["instance"] for w in wm.windows_in(1)] == ["firefox"]

    def test_kill_failures_returned(self, tracker):
        ghost = WindowIdentity(window_id=99999, host=HOST, socket="ws1-001")
        assert tracker.kill_windows([ghost]) == [ghost]


def test_fake_wm_is_a_window_manager():
    assert FakeWindowManager().name == "i3"
