"""telemetry 测试"""

from fleetmux.telemetry import Metrics, format_pane_log


def test_labels_sorted_into_key():
    m = Metrics()
    m.inc("resolver.probe", {"target": "b", "host": "db1"})
    m.inc("resolver.probe", {"host": "db1", "target": "b"})

    assert m.get_all_counters() == {"resolver.probe{host=db1,target=b}": 2}


def test_snapshot_is_a_copy():
    m = Metrics()
    m.gauge("queue.depth", 3)
    snapshot = m.snapshot()
    m.gauge("queue.depth", 7)

    assert snapshot == {"counters": {}, "gauges": {"queue.depth": 3}}
    assert m.get_gauge("queue.depth") == 7


def test_format_pane_log():
    assert format_pane_log("Poller", 2, "psql", "went down") == "[Poller:#2 psql] went down"
