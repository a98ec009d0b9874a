"""Idle versus active time per warehouse within a window.

On-time comes from lifecycle events: an on event (RUNNING, STARTING,
SCALED_UP) opens a span and STOPPED closes it, both clipped to the
window. Active time is the summed duration of executions, clamped to the
on-time since executions overlap.
"""

from collections import defaultdict
from collections.abc import Iterable

from query_radar_models import QueryExecution, WarehouseEvent, WarehouseUtilization

ON_EVENTS = frozenset({"RUNNING", "STARTING", "SCALED_UP"})
OFF_EVENTS = frozenset({"STOPPED"})


def _epoch_ms(event: WarehouseEvent) -> float:
    return event.event_time.timestamp() * 1000


def _on_time_ms(events: list[WarehouseEvent], start_ms: float, end_ms: float) -> float:
    on_ms = 0.0
    opened_at: float | None = None
    for ev in sorted(events, key=_epoch_ms):
        at = max(_epoch_ms(ev), start_ms)
        kind = ev.event_type.upper()
        if kind in ON_EVENTS:
            if opened_at is None:
                opened_at = at
        elif kind in OFF_EVENTS and opened_at is not None:
            on_ms += max(0.0, min(at, end_ms) - opened_at)
            opened_at = None

    # Still running when the window closes
    if opened_at is not None:
        on_ms += max(0.0, end_ms - opened_at)
    return on_ms


def compute_utilization(
    events: Iterable[WarehouseEvent],
    executions: Iterable[QueryExecution],
    window_start_ms: float,
    window_end_ms: float,
) -> list[WarehouseUtilization]:
    """Utilization per warehouse seen in either input, least utilized first."""
    window_ms = window_end_ms - window_start_ms
    if window_ms <= 0:
        return []

    events_by_wh: dict[str, list[WarehouseEvent]] = defaultdict(list)
    for ev in events:
        events_by_wh[ev.warehouse_id].append(ev)

    busy_ms: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for r in executions:
        busy_ms[r.warehouse_id] += r.duration_ms
        counts[r.warehouse_id] += 1

    results = []
    for wh_id in dict.fromkeys([*events_by_wh, *busy_ms]):
        wh_events = events_by_wh.get(wh_id, [])
        if wh_events:
            on_ms = _on_time_ms(wh_events, window_start_ms, window_end_ms)
        elif busy_ms.get(wh_id, 0) > 0:
            # No lifecycle events but it ran queries: on for the whole window
            on_ms = window_ms
        else:
            on_ms = 0.0

        active_ms = min(busy_ms.get(wh_id, 0), on_ms)
        pct = int(active_ms / on_ms * 100 + 0.5) if on_ms > 0 else 0
        results.append(
            WarehouseUtilization(
                warehouse_id=wh_id,
                on_time_ms=on_ms,
                active_time_ms=active_ms,
                idle_time_ms=max(0.0, on_ms - active_ms),
                utilization_percent=pct,
                query_count=counts.get(wh_id, 0),
            )
        )

    results.sort(key=lambda u: u.utilization_percent)
    return results
