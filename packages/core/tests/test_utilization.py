"""Tests for warehouse utilization."""

from datetime import UTC, datetime, timedelta

from query_radar_models import QueryExecution, WarehouseEvent

from query_radar.warehouses.utilization import compute_utilization

T0 = datetime(2026, 3, 2, tzinfo=UTC)
HOUR_MS = 3_600_000
START_MS = T0.timestamp() * 1000
END_MS = START_MS + 10 * HOUR_MS


def _event(kind: str, hours: float, warehouse_id: str = "wh-1") -> WarehouseEvent:
    return WarehouseEvent(
        warehouse_id=warehouse_id, event_type=kind, event_time=T0 + timedelta(hours=hours)
    )


def _run(duration_ms: float, warehouse_id: str = "wh-1") -> QueryExecution:
    return QueryExecution(
        statement_id=f"s-{warehouse_id}-{duration_ms}",
        warehouse_id=warehouse_id,
        duration_ms=duration_ms,
    )


class TestOnTime:
    def test_start_stop_pair(self):
        events = [_event("RUNNING", 1), _event("STOPPED", 3)]
        u = compute_utilization(events, [_run(HOUR_MS / 2)], START_MS, END_MS)[0]
        assert u.on_time_ms == 2 * HOUR_MS
        assert u.active_time_ms == HOUR_MS / 2
        assert u.idle_time_ms == 1.5 * HOUR_MS
        assert u.utilization_percent == 25
        assert u.query_count == 1

    def test_events_are_sorted(self):
        events = [_event("STOPPED", 3), _event("STARTING", 1)]
        u = compute_utilization(events, [], START_MS, END_MS)[0]
        assert u.on_time_ms == 2 * HOUR_MS

    def test_repeated_on_events_keep_first_start(self):
        events = [_event("STARTING", 1), _event("RUNNING", 1.1), _event("SCALED_UP", 2)]
        events.append(_event("STOPPED", 4))
        u = compute_utilization(events, [], START_MS, END_MS)[0]
        assert u.on_time_ms == 3 * HOUR_MS

    def test_clipped_to_window(self):
        events = [_event("RUNNING", -5), _event("STOPPED", 2)]
        u = compute_utilization(events, [], START_MS, END_MS)[0]
        assert u.on_time_ms == 2 * HOUR_MS

    def test_still_running_at_window_end(self):
        u = compute_utilization([_event("RUNNING", 8)], [], START_MS, END_MS)[0]
        assert u.on_time_ms == 2 * HOUR_MS

    def test_stop_without_start_is_ignored(self):
        u = compute_utilization([_event("STOPPED", 2)], [], START_MS, END_MS)[0]
        assert u.on_time_ms == 0
        assert u.utilization_percent == 0


class TestActiveTime:
    def test_no_events_but_queries_means_always_on(self):
        u = compute_utilization([], [_run(HOUR_MS)], START_MS, END_MS)[0]
        assert u.on_time_ms == 10 * HOUR_MS
        assert u.utilization_percent == 10

    def test_active_clamped_to_on_time(self):
        events = [_event("RUNNING", 0), _event("STOPPED", 1)]
        runs = [_run(HOUR_MS), _run(2 * HOUR_MS)]
        u = compute_utilization(events, runs, START_MS, END_MS)[0]
        assert u.active_time_ms == HOUR_MS
        assert u.idle_time_ms == 0
        assert u.utilization_percent == 100


class TestWindow:
    def test_empty_window(self):
        assert compute_utilization([_event("RUNNING", 1)], [], START_MS, START_MS) == []
        assert compute_utilization([_event("RUNNING", 1)], [], END_MS, START_MS) == []

    def test_sorted_least_utilized_first(self):
        events = [
            _event("RUNNING", 0, "busy"),
            _event("STOPPED", 1, "busy"),
            _event("RUNNING", 0, "idle"),
            _event("STOPPED", 5, "idle"),
        ]
        runs = [_run(HOUR_MS / 2, "busy"), _run(HOUR_MS / 2, "idle")]
        results = compute_utilization(events, runs, START_MS, END_MS)
        assert [u.warehouse_id for u in results] == ["idle", "busy"]
        assert [u.utilization_percent for u in results] == [10, 50]
