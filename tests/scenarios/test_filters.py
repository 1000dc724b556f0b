"""Tests for filter construction and evaluation."""

import logging

import pytest

from scenariodesk.errors import ScenarioConfigError
from scenariodesk.scenarios import filters as filters_module
from scenariodesk.scenarios.filters import (
    Operator,
    ScenarioFilter,
    determine_filter_type,
    evaluate_filter,
    extract_indicator,
    unresolved_operands,
)
from scenariodesk.types import Timeframe


def _filter(field, operator, value=None, **extra):
    raw = {"id": "f", "field": field, "operator": operator, **extra}
    if value is not None:
        raw["value"] = value
    return ScenarioFilter.from_raw(raw)


@pytest.fixture
def close_snapshot(snapshot_factory, candle_factory):
    """Daily snapshot whose P0 close is the given value."""
    def build(close):
        return snapshot_factory({"1D": [candle_factory(close, close, close, close)]})
    return build


# ---------------------------------------------------------------------------
# Comparison operators
# ---------------------------------------------------------------------------

class TestComparison:

    def test_gt_against_indicator(self, snapshot):
        assert evaluate_filter(_filter("1D_P0_close", "gt", "1D_P0_sma_89"), snapshot)

    def test_lt(self, snapshot):
        assert not evaluate_filter(_filter("1D_P0_close", "lt", "1D_P1_low"), snapshot)
        assert evaluate_filter(_filter("1D_P1_close", "lt", "1D_P0_low"), snapshot)

    def test_inclusive_bounds(self, snapshot):
        assert evaluate_filter(_filter("1D_P2_close", "gte", 100), snapshot)
        assert evaluate_filter(_filter("1D_P2_close", "lte", 100), snapshot)
        assert not evaluate_filter(_filter("1D_P2_close", "gt", 100), snapshot)
        assert not evaluate_filter(_filter("1D_P2_close", "lt", 100), snapshot)

    def test_above_below_aliases(self, snapshot):
        assert evaluate_filter(_filter("1D_P0_open", "above", "1D_P1_high"), snapshot)
        assert evaluate_filter(_filter("2H_P0_close", "below", "2H_P0_sma_89"), snapshot)

    def test_value_may_be_an_expression(self, snapshot):
        # 106 > 95 * 1.1 = 104.5
        assert evaluate_filter(_filter("1D_P0_close", "gt", "1D_P0_sma_89 * 1.1"), snapshot)
        assert not evaluate_filter(_filter("1D_P0_close", "gt", "1D_P0_sma_89 * 1.2"), snapshot)

    def test_ne(self, close_snapshot):
        assert evaluate_filter(_filter("1D_P0_close", "ne", 100), close_snapshot(100.5))
        assert not evaluate_filter(_filter("1D_P0_close", "ne", 100), close_snapshot(100.004))


class TestEqualityTolerance:

    def test_within_tolerance(self, close_snapshot):
        assert evaluate_filter(_filter("1D_P0_close", "eq", 100.00), close_snapshot(100.004))

    def test_outside_tolerance(self, close_snapshot):
        assert not evaluate_filter(_filter("1D_P0_close", "eq", 100.00), close_snapshot(100.02))

    def test_custom_tolerance(self, close_snapshot):
        f = _filter("1D_P0_close", "eq", 100.00)
        assert evaluate_filter(f, close_snapshot(100.02), tolerance=0.05)


class TestBetween:

    @pytest.mark.parametrize("close,expected", [(15, True), (10, True), (20, True), (9.99, False), (20.01, False)])
    def test_inclusive_range(self, close_snapshot, close, expected):
        f = _filter("1D_P0_close", "between", minValue=10, maxValue=20)
        assert evaluate_filter(f, close_snapshot(close)) is expected

    def test_inverted_bounds_never_pass(self, close_snapshot):
        f = _filter("1D_P0_close", "between", minValue=20, maxValue=10)
        assert not evaluate_filter(f, close_snapshot(15))

    def test_missing_bound(self, close_snapshot):
        f = _filter("1D_P0_close", "between", minValue=10)
        assert not evaluate_filter(f, close_snapshot(15))

    def test_bounds_from_parameters(self, snapshot):
        f = ScenarioFilter.from_raw(
            {
                "field": "1D_P0_rsi_14",
                "operator": "between",
                "parameters": {"minValue": 50, "maxValue": 70},
            }
        )
        assert evaluate_filter(f, snapshot)


class TestCrosses:

    def test_crosses_above(self, snapshot):
        # P1 close 99.5 <= 100 < P0 close 106
        assert evaluate_filter(_filter("1D_P0_close", "crosses_above", 100), snapshot)
        assert not evaluate_filter(_filter("1D_P0_close", "crosses_below", 100), snapshot)

    def test_crosses_below(self, snapshot):
        # 2H: P1 close 101 >= 100 > P0 close 98
        assert evaluate_filter(_filter("2H_P0_close", "crosses_below", 100), snapshot)
        assert not evaluate_filter(_filter("2H_P0_close", "crosses_above", 100), snapshot)

    def test_previous_touching_operand_counts(self, snapshot):
        assert evaluate_filter(_filter("1D_P0_close", "crosses_above", 99.5), snapshot)

    def test_no_cross_when_already_above(self, snapshot):
        assert not evaluate_filter(_filter("1D_P0_close", "crosses_above", 95), snapshot)

    def test_operand_resolved_at_its_own_period(self, snapshot):
        # Daily SMA exists only on P0; the crossing still compares P1 close to it
        assert not evaluate_filter(_filter("1D_P0_close", "crosses_above", "1D_P0_sma_89"), snapshot)

    def test_oldest_period_cannot_cross(self, snapshot):
        assert not evaluate_filter(_filter("1D_P5_close", "crosses_above", 50), snapshot)

    def test_missing_previous_period(self, snapshot):
        assert not evaluate_filter(_filter("2H_P2_close", "crosses_above", 50), snapshot)

    def test_constant_field_cannot_cross(self, snapshot):
        assert not evaluate_filter(_filter("5", "crosses_above", 1), snapshot)


# ---------------------------------------------------------------------------
# Missing data and bad configuration
# ---------------------------------------------------------------------------

class TestMissingData:

    def test_absent_timeframe_fails(self, snapshot):
        assert not evaluate_filter(_filter("1W_P0_close", "gt", 0), snapshot)

    def test_absent_period_fails(self, snapshot):
        assert not evaluate_filter(_filter("2H_P4_close", "lt", 1e9), snapshot)

    def test_missing_value_fails(self, snapshot):
        assert not evaluate_filter(_filter("1D_P0_close", "gt"), snapshot)

    def test_unresolvable_value_fails(self, snapshot):
        assert not evaluate_filter(_filter("1D_P0_close", "gt", "1D_P1_sma_89"), snapshot)

    def test_evaluation_error_is_absorbed(self, snapshot, monkeypatch, caplog):
        def boom(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(filters_module, "_evaluate", boom)
        with caplog.at_level(logging.ERROR, logger="scenariodesk.scenarios.filters"):
            assert evaluate_filter(_filter("1D_P0_close", "gt", 1), snapshot) is False
        assert "failed to evaluate" in caplog.text


class TestUnresolvedOperands:

    def test_all_resolved(self, snapshot):
        assert unresolved_operands(_filter("1D_P0_open", "gt", "1D_P1_high"), snapshot) == []

    def test_missing_comparison_operand(self, snapshot):
        assert unresolved_operands(_filter("1D_P0_close", "gt", "1W_P0_close"), snapshot) == ["1W_P0_close"]

    def test_missing_between_bound(self, snapshot):
        f = _filter("1D_P0_close", "between", minValue="2H_P4_low", maxValue=200)
        assert unresolved_operands(f, snapshot) == ["2H_P4_low"]

    def test_crosses_needs_previous_period(self, snapshot):
        assert unresolved_operands(_filter("2H_P2_close", "crosses_above", 99), snapshot) == [
            "2H_P2_close (previous period)"
        ]
        assert unresolved_operands(_filter("1D_P5_close", "crosses_below", 99), snapshot) == [
            "1D_P5_close (previous period)"
        ]

    def test_unknown_operator_is_not_a_data_problem(self, snapshot):
        assert unresolved_operands(_filter("1W_P0_close", "approximately", 1), snapshot) == []


class TestFromRaw:

    def test_timeframe_and_period_from_reference(self):
        f = _filter("2H_P3_low", "lt", 1)
        assert f.timeframe is Timeframe.TWO_HOUR
        assert f.period == 3
        assert f.field_name == "2H_P3_low"

    def test_bare_field_uses_configured_timeframe(self, snapshot):
        f = _filter("high", "eq", 100, timeframe="1D", period="P1")
        assert f.timeframe is Timeframe.DAILY
        assert f.period == 1
        assert evaluate_filter(f, snapshot)

    def test_bare_operand_follows_filter_timeframe(self, snapshot):
        f = _filter("close", "gt", "sma_89", timeframe="1D")
        assert evaluate_filter(f, snapshot)

    def test_defaults(self):
        f = ScenarioFilter.from_raw({"field": "1D_P0_close", "value": 1}, index=3)
        assert f.id == "filter-3"
        assert f.operator is Operator.GT
        assert f.weight == 1.0
        assert f.is_active
        assert not f.is_critical

    def test_zero_weight_kept(self):
        assert _filter("1D_P0_close", "gt", 1, weight=0).weight == 0.0

    def test_bad_weight(self):
        with pytest.raises(ScenarioConfigError, match="weight"):
            _filter("1D_P0_close", "gt", 1, weight="heavy")

    def test_missing_field(self):
        with pytest.raises(ScenarioConfigError, match="field is missing"):
            ScenarioFilter.from_raw({"id": "x", "operator": "gt", "value": 1})

    def test_entry_must_be_a_mapping(self):
        with pytest.raises(ScenarioConfigError, match="filter #2 must be a mapping"):
            ScenarioFilter.from_raw("1D_P0_close gt 100", index=2)

    def test_parameters_must_be_a_mapping(self):
        with pytest.raises(ScenarioConfigError, match="'x': parameters must be a mapping"):
            ScenarioFilter.from_raw({"id": "x", "field": "1D_P0_close", "parameters": "oops"})

    def test_unknown_operator_never_passes(self, snapshot, caplog):
        with caplog.at_level(logging.WARNING, logger="scenariodesk.scenarios.filters"):
            f = _filter("1D_P0_close", "approximately", 106)
        assert f.operator is None
        assert "approximately" in caplog.text
        assert not evaluate_filter(f, snapshot)

    @pytest.mark.parametrize(
        "extra",
        [{"isRequired": True}, {"required": "true"}, {"critical": True}, {"priority": "HIGH"}],
    )
    def test_critical_markers(self, extra):
        assert _filter("1D_P0_close", "gt", 1, **extra).is_critical

    def test_inactive(self):
        assert not _filter("1D_P0_close", "gt", 1, isActive=False).is_active

    def test_inferred_type_and_indicator(self):
        f = _filter("1D_P0_rsi_14", "gt", 50)
        assert f.type == "indicator"
        assert f.indicator == "rsi"

    def test_explicit_type_wins(self):
        assert _filter("1D_P0_close", "gt", 1, type="custom").type == "custom"


def test_operator_parse():
    assert Operator.parse(" GT ") is Operator.GT
    assert Operator.parse("crosses_below") is Operator.CROSSES_BELOW
    assert Operator.parse("approx") is None
    assert Operator.parse(None) is None


@pytest.mark.parametrize(
    "field,expected",
    [
        ("1D_P0_close", "price"),
        ("price", "price"),
        ("2H_P1_volume", "volume"),
        ("1D_P0_sma_89", "indicator"),
        ("1D_P0_ema_21", "indicator"),
        ("atr", "indicator"),
        ("sentiment", "custom"),
    ],
)
def test_determine_filter_type(field, expected):
    assert determine_filter_type(field) == expected


@pytest.mark.parametrize(
    "field,expected",
    [
        ("1D_P0_rsi_14", "rsi"),
        ("1D_P0_sma_89", "sma"),
        ("1D_P0_ema_21", "ema"),
        ("1D_P0_bb_upper", "bollingerBands"),
        ("vwap", "vwap"),
        ("1D_P0_close", None),
    ],
)
def test_extract_indicator(field, expected):
    assert extract_indicator(field) == expected
