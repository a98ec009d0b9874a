"""Tests for the warehouse recommendation chain."""

import pytest
from query_radar_models import (
    ConfidenceLevel,
    RecommendationSeverity,
    WarehouseAction,
    WarehouseHealthMetrics,
    WarehouseRecommendation,
)

from query_radar.config import RecommendationThresholds
from query_radar.errors import ContractViolationError
from query_radar.warehouses.recommend import (
    generate_recommendations,
    rank_recommendations,
    recommend_one,
    resolve_confidence,
)


def _metrics(**overrides) -> WarehouseHealthMetrics:
    """A busy Small warehouse with mild spill that trips no rule."""
    values = dict(
        warehouse_id="wh-1",
        warehouse_name="Analytics",
        size="Small",
        warehouse_type="PRO",
        max_clusters=2,
        auto_stop_minutes=10,
        total_queries=500,
        active_days=7,
        avg_runtime_sec=5,
        total_spill_gib=0.3,
        weekly_dbus=20,
        weekly_cost_dollars=100,
    )
    values.update(overrides)
    return WarehouseHealthMetrics(**values)


def _spill(**overrides) -> WarehouseHealthMetrics:
    return _metrics(total_spill_gib=4, days_with_spill=6, **overrides)


def _queue(**overrides) -> WarehouseHealthMetrics:
    return _metrics(total_capacity_queue_min=30, days_with_capacity_queue=4, **overrides)


class TestConfidence:
    def test_high(self):
        level, reason = resolve_confidence(6, 0, 0, 500)
        assert level == ConfidenceLevel.HIGH
        assert "6/7 days" in reason

    def test_high_needs_volume(self):
        level, _ = resolve_confidence(6, 0, 0, 50)
        assert level == ConfidenceLevel.MEDIUM

    def test_medium_uses_worst_metric(self):
        level, _ = resolve_confidence(0, 1, 3, 10)
        assert level == ConfidenceLevel.MEDIUM

    def test_intermittent(self):
        level, reason = resolve_confidence(2, 0, 0, 500)
        assert level == ConfidenceLevel.LOW
        assert reason.startswith("Intermittent: seen on only 2/7 days")

    def test_nothing(self):
        assert resolve_confidence(0, 0, 0, 0) == (
            ConfidenceLevel.LOW,
            "No sustained pattern detected",
        )


class TestHealthy:
    def test_no_change(self):
        rec = recommend_one(_metrics())
        assert rec.action == WarehouseAction.NO_CHANGE
        assert rec.severity == RecommendationSeverity.HEALTHY
        assert rec.headline == "Warehouse is healthy"
        assert rec.estimated_new_weekly_cost == 100
        assert rec.cost_delta == 0
        assert rec.target_size is None


class TestSpill:
    def test_sustained_spill_upsizes_one_tier(self):
        rec = recommend_one(_spill())
        assert rec.action == WarehouseAction.UPSIZE
        assert rec.target_size == "Medium"
        assert rec.headline == "Upsize to Medium"
        assert rec.confidence == ConfidenceLevel.HIGH
        assert rec.severity == RecommendationSeverity.CRITICAL
        assert rec.estimated_new_weekly_cost == pytest.approx(200)
        assert rec.cost_delta == pytest.approx(100)
        assert rec.cost_delta_percent == pytest.approx(100)

    def test_medium_confidence_is_a_warning(self):
        rec = recommend_one(_metrics(total_spill_gib=4, days_with_spill=3))
        assert rec.action == WarehouseAction.UPSIZE
        assert rec.confidence == ConfidenceLevel.MEDIUM
        assert rec.severity == RecommendationSeverity.WARNING

    def test_spill_on_too_few_days(self):
        rec = recommend_one(_metrics(total_spill_gib=4, days_with_spill=2))
        assert rec.action == WarehouseAction.NO_CHANGE

    def test_already_largest(self):
        rec = recommend_one(_spill(size="4X-Large"))
        assert rec.action == WarehouseAction.UPSIZE
        assert rec.target_size is None
        assert rec.headline.startswith("Already max size")
        assert rec.estimated_new_weekly_cost == 100


class TestSpillAndQueue:
    def test_upsize_and_scale(self):
        rec = recommend_one(_spill(total_capacity_queue_min=30, days_with_capacity_queue=4))
        assert rec.action == WarehouseAction.UPSIZE_AND_SCALE
        assert rec.headline == "Upsize to Medium + scale to 4 clusters"
        assert rec.target_size == "Medium"
        assert rec.target_max_clusters == 4
        assert rec.estimated_new_weekly_cost == pytest.approx(400)

    def test_clusters_at_cap(self):
        rec = recommend_one(
            _spill(total_capacity_queue_min=30, days_with_capacity_queue=4, max_clusters=10)
        )
        assert rec.action == WarehouseAction.UPSIZE
        assert rec.target_size == "Medium"
        assert rec.target_max_clusters is None
        assert "Clusters already at max (10)" in rec.rationale

    def test_size_at_max(self):
        rec = recommend_one(
            _spill(total_capacity_queue_min=30, days_with_capacity_queue=4, size="4X-Large")
        )
        assert rec.action == WarehouseAction.ADD_CLUSTERS
        assert rec.headline == "Increase max clusters to 4"

    def test_everything_at_max(self):
        rec = recommend_one(
            _spill(
                total_capacity_queue_min=30,
                days_with_capacity_queue=4,
                size="4X-Large",
                max_clusters=10,
            )
        )
        assert rec.action == WarehouseAction.UPSIZE_AND_SCALE
        assert rec.headline.startswith("At max config")
        assert rec.target_size is None
        assert rec.target_max_clusters is None


class TestQueue:
    def test_add_clusters(self):
        rec = recommend_one(_queue())
        assert rec.action == WarehouseAction.ADD_CLUSTERS
        assert rec.headline == "Increase max clusters to 4"
        assert rec.target_max_clusters == 4
        assert rec.estimated_new_weekly_cost == pytest.approx(200)

    def test_cluster_step_is_capped(self):
        rec = recommend_one(_queue(max_clusters=9))
        assert rec.target_max_clusters == 10

    def test_at_max_clusters(self):
        rec = recommend_one(_queue(max_clusters=10))
        assert rec.action == WarehouseAction.ADD_CLUSTERS
        assert rec.headline.startswith("At max clusters")
        assert rec.target_max_clusters is None

    def test_wasted_queue_cost(self):
        rec = recommend_one(_queue())
        active = 5 * 500 / 60
        assert rec.wasted_queue_minutes == 30
        assert rec.wasted_queue_cost_estimate == pytest.approx(30 * 100 / (active + 30))


class TestQueueRatio:
    def _ratio(self, **overrides):
        # 5 min queued against 500 one-second queries: ratio 0.6
        values = dict(avg_runtime_sec=1, total_capacity_queue_min=5)
        values.update(overrides)
        return _metrics(**values)

    def test_ratio_adds_clusters(self):
        rec = recommend_one(self._ratio())
        assert rec.action == WarehouseAction.ADD_CLUSTERS
        assert rec.severity == RecommendationSeverity.WARNING
        assert rec.target_max_clusters == 4
        assert "60%" in rec.rationale
        assert "Serverless" in rec.rationale

    def test_needs_volume(self):
        assert recommend_one(self._ratio(total_queries=40)).action == WarehouseAction.NO_CHANGE

    def test_at_cap_ends_the_chain(self):
        # Would otherwise reach the auto-stop rule
        rec = recommend_one(
            self._ratio(max_clusters=10, total_cold_start_min=3, auto_stop_minutes=2)
        )
        assert rec.action == WarehouseAction.NO_CHANGE
        assert rec.headline == "Warehouse is healthy"


class TestColdStart:
    def _cold(self, **overrides):
        values = dict(total_cold_start_min=12, days_with_cold_start=4)
        values.update(overrides)
        return _metrics(**values)

    def test_serverless(self):
        rec = recommend_one(self._cold(auto_stop_minutes=2))
        assert rec.action == WarehouseAction.SERVERLESS
        assert rec.headline == "Switch to Serverless"
        assert "Estimated 144 queries affected" in rec.rationale
        assert "Current auto-stop is 2 min" in rec.rationale
        assert rec.serverless_cost_estimate is None

    def test_serverless_wins_over_spill(self):
        rec = recommend_one(self._cold(total_spill_gib=4, days_with_spill=6))
        assert rec.action == WarehouseAction.SERVERLESS

    def test_serverless_cost_comparison(self):
        rec = recommend_one(self._cold(), serverless_unit_price=0.7)
        assert rec.serverless_cost_estimate == pytest.approx(14)
        assert rec.serverless_savings == pytest.approx(86)
        assert rec.cold_start_minutes_saved == 12
        assert rec.estimated_new_weekly_cost == pytest.approx(14)
        assert "$14.00/wk" in rec.rationale

    def test_zero_price_skips_comparison(self):
        rec = recommend_one(self._cold(), serverless_unit_price=0)
        assert rec.serverless_cost_estimate is None
        assert rec.serverless_savings is None

    def test_already_serverless(self):
        rec = recommend_one(self._cold(is_serverless=True), serverless_unit_price=0.7)
        assert rec.action == WarehouseAction.NO_CHANGE
        assert rec.serverless_cost_estimate is None

    def test_increase_autostop(self):
        rec = recommend_one(
            _metrics(total_cold_start_min=3, days_with_cold_start=2, auto_stop_minutes=2)
        )
        assert rec.action == WarehouseAction.INCREASE_AUTOSTOP
        assert rec.severity == RecommendationSeverity.WARNING
        assert rec.headline == "Increase auto-stop to 12 min"
        assert rec.target_auto_stop == 12


class TestLowPressure:
    def _quiet(self, **overrides):
        values = dict(total_spill_gib=0.05, size="Medium")
        values.update(overrides)
        return _metrics(**values)

    def test_downsize(self):
        rec = recommend_one(self._quiet())
        assert rec.action == WarehouseAction.DOWNSIZE
        assert rec.severity == RecommendationSeverity.INFO
        assert rec.headline == "Downsize to Small"
        assert rec.estimated_new_weekly_cost == pytest.approx(50)
        assert "~50%" in rec.rationale

    def test_downsize_needs_traffic(self):
        assert recommend_one(self._quiet(total_queries=10)).action == WarehouseAction.NO_CHANGE
        assert recommend_one(self._quiet(active_days=2)).action == WarehouseAction.NO_CHANGE

    def test_smallest_size_ends_the_chain(self):
        rec = recommend_one(self._quiet(size="2X-Small", auto_stop_minutes=60))
        assert rec.action == WarehouseAction.NO_CHANGE
        assert rec.target_auto_stop is None

    def test_decrease_autostop(self):
        rec = recommend_one(self._quiet(active_days=2, auto_stop_minutes=60))
        assert rec.action == WarehouseAction.DECREASE_AUTOSTOP
        assert rec.severity == RecommendationSeverity.INFO
        assert rec.headline == "Decrease auto-stop to 45 min"
        assert rec.target_auto_stop == 45
        assert "$1.04/wk" in rec.rationale

    def test_decrease_autostop_floor(self):
        rec = recommend_one(self._quiet(active_days=2, auto_stop_minutes=31))
        assert rec.target_auto_stop == 16

    def test_smallest_with_short_autostop_is_healthy(self):
        rec = recommend_one(self._quiet(size="2X-Small"))
        assert rec.action == WarehouseAction.NO_CHANGE


class TestCustomThresholds:
    def test_sustained_days(self):
        thr = RecommendationThresholds(sustained_days=7)
        rec = recommend_one(_spill(), thresholds=thr)
        assert rec.action == WarehouseAction.NO_CHANGE


class TestGenerate:
    def test_one_per_warehouse_in_input_order(self):
        metrics = [_metrics(warehouse_id="a"), _spill(warehouse_id="b"), _queue(warehouse_id="c")]
        recs = generate_recommendations(metrics)
        assert [r.metrics.warehouse_id for r in recs] == ["a", "b", "c"]

    def test_negative_price(self):
        with pytest.raises(ContractViolationError) as exc:
            generate_recommendations([_metrics()], serverless_unit_price=-1)
        assert exc.value.field == "serverless_unit_price"

    def test_negative_price_for_one_warehouse(self):
        with pytest.raises(ContractViolationError) as exc:
            recommend_one(_metrics(total_cold_start_min=12, days_with_cold_start=4), -1)
        assert exc.value.field == "serverless_unit_price"

    def test_negative_price_with_no_warehouses(self):
        with pytest.raises(ContractViolationError):
            generate_recommendations([], serverless_unit_price=-0.5)

    def test_empty(self):
        assert generate_recommendations([]) == []


def _rec(name: str, severity: RecommendationSeverity, wasted: float = 0, cost: float = 0):
    return WarehouseRecommendation(
        metrics=_metrics(warehouse_id=name),
        severity=severity,
        headline="h",
        rationale="r",
        confidence=ConfidenceLevel.LOW,
        confidence_reason="",
        wasted_queue_cost_estimate=wasted,
        current_weekly_cost=cost,
    )


class TestRank:
    def test_severity_then_waste_then_cost(self):
        recs = [
            _rec("healthy", RecommendationSeverity.HEALTHY, cost=1000),
            _rec("info", RecommendationSeverity.INFO),
            _rec("warn-cheap", RecommendationSeverity.WARNING, wasted=5, cost=10),
            _rec("crit", RecommendationSeverity.CRITICAL),
            _rec("warn-waste", RecommendationSeverity.WARNING, wasted=50),
            _rec("warn-pricey", RecommendationSeverity.WARNING, wasted=5, cost=90),
        ]
        ranked = rank_recommendations(recs)
        assert [r.metrics.warehouse_id for r in ranked] == [
            "crit",
            "warn-waste",
            "warn-pricey",
            "warn-cheap",
            "info",
            "healthy",
        ]

    def test_does_not_mutate_input(self):
        recs = [_rec("a", RecommendationSeverity.INFO), _rec("b", RecommendationSeverity.CRITICAL)]
        rank_recommendations(recs)
        assert [r.metrics.warehouse_id for r in recs] == ["a", "b"]
