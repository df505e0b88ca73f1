"""PaneStateStore 测试"""

import pytest

from fleetmux.models import ActivityState, PaneCapture, PaneStatus, PaneUpdate, TrackedPane
from fleetmux.state import PaneStateStore, activity_state, fingerprint
from fleetmux.telemetry import metrics

PANES = [
    TrackedPane(host="db1", session="main", window=0, pane_id="%0"),
    TrackedPane(host="web1", session="main", window=1, pane_id="%4", label="nginx"),
]


def _capture(*lines: str, command: str = "bash") -> PaneCapture:
    return PaneCapture(command=command, title="t", lines=lines)


def _ok(index: int, at: float, capture: PaneCapture | None = None) -> PaneUpdate:
    return PaneUpdate(index=index, status=PaneStatus.OK, timestamp=at, capture=capture or _capture("x"))


def _down(index: int, at: float, error: str = "boom") -> PaneUpdate:
    return PaneUpdate(index=index, status=PaneStatus.DOWN, timestamp=at, error=error)


@pytest.fixture
def store():
    return PaneStateStore(PANES)


class TestFingerprint:
    """内容指纹测试"""

    def test_deterministic(self):
        assert fingerprint(_capture("a", "b")) == fingerprint(_capture("a", "b"))

    def test_single_character_change(self):
        assert fingerprint(_capture("hello", "world")) != fingerprint(_capture("hello", "worle"))

    def test_command_change(self):
        assert fingerprint(_capture("a", command="bash")) != fingerprint(_capture("a", command="vim"))

    def test_line_boundaries_matter(self):
        assert fingerprint(_capture("ab", "")) != fingerprint(_capture("a", "b"))

    def test_title_ignored(self):
        first = PaneCapture(command="bash", title="one", lines=("a",))
        second = PaneCapture(command="bash", title="two", lines=("a",))
        assert fingerprint(first) == fingerprint(second)

    def test_known_value_empty(self):
        """空 capture 等于 FNV-1a 64 offset basis"""
        assert fingerprint(PaneCapture(command="", title="")) == 0xCBF29CE484222325

    def test_fits_64_bits(self):
        assert 0 <= fingerprint(_capture("x" * 1000)) < 2**64


class TestApplyUpdate:
    """apply_update 测试"""

    def test_initial_state(self, store):
        assert len(store) == 2
        for pane in store.panes:
            assert pane.status == PaneStatus.STALE
            assert pane.last_capture is None
            assert pane.last_update is None
            assert pane.last_change is None

    def test_first_capture_sets_change(self, store):
        store.apply_update(_ok(0, 10.0))
        pane = store.get(0)

        assert pane.status == PaneStatus.OK
        assert pane.last_update == 10.0
        assert pane.last_change == 10.0
        assert pane.last_fingerprint == fingerprint(_capture("x"))

    def test_unchanged_fingerprint_keeps_change_time(self, store):
        store.apply_update(_ok(0, 10.0))
        store.apply_update(_ok(0, 11.0))
        pane = store.get(0)

        assert pane.last_update == 11.0
        assert pane.last_change == 10.0

    def test_changed_fingerprint_updates_change_time(self, store):
        store.apply_update(_ok(0, 10.0, _capture("a")))
        store.apply_update(_ok(0, 12.0, _capture("b")))

        assert store.get(0).last_change == 12.0
        assert store.get(0).last_capture.lines == ("b",)

    def test_down_keeps_last_capture(self, store):
        store.apply_update(_ok(0, 10.0, _capture("a")))
        store.apply_update(_down(0, 11.0, "ssh command failed"))
        pane = store.get(0)

        assert pane.status == PaneStatus.DOWN
        assert pane.error == "ssh command failed"
        assert pane.last_capture.lines == ("a",)
        assert pane.last_change == 10.0
        assert pane.last_update == 11.0

    def test_recovery_clears_error(self, store):
        store.apply_update(_down(0, 10.0))
        store.apply_update(_ok(0, 11.0))

        assert store.get(0).status == PaneStatus.OK
        assert store.get(0).error is None

    def test_out_of_range_index_ignored(self, store):
        store.apply_update(_ok(5, 10.0))
        store.apply_update(_ok(-1, 10.0))

        assert all(pane.last_update is None for pane in store.panes)


class TestRefreshStale:
    """staleness sweep 测试"""

    def test_ok_goes_stale_after_two_intervals(self, store):
        """refresh=750ms，2000ms 前更新 → STALE (2000 > 1500)"""
        store.apply_update(_ok(0, 100.0))

        changed = store.refresh_stale(102.0, 0.75)

        assert store.get(0).status == PaneStatus.STALE
        assert changed == [0]
        assert metrics.get_counter("state.stale") == 1

    def test_down_untouched(self, store):
        store.apply_update(_down(0, 100.0))

        store.refresh_stale(102.0, 0.75)

        assert store.get(0).status == PaneStatus.DOWN

    def test_down_untouched_when_fresh(self, store):
        store.apply_update(_down(0, 100.0))

        store.refresh_stale(100.1, 0.75)

        assert store.get(0).status == PaneStatus.DOWN

    def test_stale_back_to_ok(self, store):
        store.apply_update(_ok(0, 100.0))
        store.refresh_stale(102.0, 0.75)
        store.apply_update(_ok(0, 102.5))

        changed = store.refresh_stale(103.0, 0.75)

        assert store.get(0).status == PaneStatus.OK
        assert changed == []

    def test_fresh_ok_stays_ok(self, store):
        store.apply_update(_ok(0, 100.0))

        assert store.refresh_stale(101.5, 0.75) == []
        assert store.get(0).status == PaneStatus.OK

    def test_never_updated_stays_stale(self, store):
        assert store.refresh_stale(100.0, 0.75) == []
        assert store.get(1).status == PaneStatus.STALE


class TestActivity:
    """活跃度测试"""

    def test_pure_function_thresholds(self):
        assert activity_state(None, 100.0, 2.0, 10.0) == ActivityState.QUIET
        assert activity_state(99.0, 100.0, 2.0, 10.0) == ActivityState.ACTIVE
        assert activity_state(98.0, 100.0, 2.0, 10.0) == ActivityState.ACTIVE
        assert activity_state(95.0, 100.0, 2.0, 10.0) == ActivityState.QUIET
        assert activity_state(90.0, 100.0, 2.0, 10.0) == ActivityState.IDLE

    def test_non_ok_is_quiet(self, store):
        store.apply_update(_ok(0, 100.0))
        store.apply_update(_down(0, 100.5))

        assert store.activity_state(0, 2.0, 10.0, now=101.0) == ActivityState.QUIET

    def test_store_activity(self, store):
        store.apply_update(_ok(0, 100.0))

        assert store.activity_state(0, 2.0, 10.0, now=101.0) == ActivityState.ACTIVE
        assert store.activity_state(0, 2.0, 10.0, now=105.0) == ActivityState.QUIET
        assert store.activity_state(0, 2.0, 10.0, now=111.0) == ActivityState.IDLE

    def test_unknown_index_quiet(self, store):
        assert store.activity_state(9, 2.0, 10.0, now=1.0) == ActivityState.QUIET

    def test_transitions(self, store):
        store.apply_update(_ok(0, 100.0))

        started = store.update_activity_states(2.0, 10.0, now=100.5)
        steady = store.update_activity_states(2.0, 10.0, now=101.0)
        stopped = store.update_activity_states(2.0, 10.0, now=103.0)

        assert started.active == [0]
        assert started.stopped == []
        assert steady.active == [] and steady.stopped == []
        assert stopped.stopped == [0]


class TestSerialization:
    def test_to_list(self, store):
        store.apply_update(_ok(1, 100.0, _capture("hi")))
        data = store.to_list(2.0, 10.0, now=101.0)

        assert [item["index"] for item in data] == [0, 1]
        assert data[0]["status"] == "stale"
        assert data[0]["capture"] is None
        assert data[1]["name"] == "nginx"
        assert data[1]["activity"] == "active"
        assert data[1]["capture"]["lines"] == ["hi"]
        assert data[1]["last_update_age"] == pytest.approx(1.0)
