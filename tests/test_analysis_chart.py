"""Tests for the chart adapters."""

from __future__ import annotations

import pytest

from pulso.analysis.chart import (
    ChartKind,
    chart_for_question,
    distribution_to_bar_data,
    mean_response,
    question_chart,
    range_bar_data,
    range_bars,
    range_bounds,
    yes_no_split,
)
from pulso.analysis.distribution import DistributionAggregator, distribution_from_rows
from pulso.analysis.models import BarDatum, OutcomeStatus, QuestionDistribution
from pulso.analysis.segments import DistributionFilters
from pulso.catalog import QuestionCatalog
from pulso.config import PulsoSettings
from pulso.store import MemoryStore, Row

NS_NC = {99, 98, -1, 0}


def _dist(*values: int) -> QuestionDistribution:
    result = distribution_from_rows(1, "Q", [{"Q": v} for v in values], NS_NC)
    assert result is not None
    return result


class TestBarData:
    def test_drops_ns_nc_by_default(self) -> None:
        bars = distribution_to_bar_data(_dist(1, 1, 2, 99))
        assert bars == [BarDatum("1", 66.7), BarDatum("2", 33.3)]

    def test_includes_ns_nc_with_label(self) -> None:
        bars = distribution_to_bar_data(_dist(1, 99), include_ns_nc=True, ns_nc_label="No sabe")
        assert bars == [BarDatum("1", 100.0), BarDatum("No sabe", 0.0)]

    def test_custom_labels(self) -> None:
        bars = distribution_to_bar_data(_dist(1, 2), labels={1: "Sí"})
        assert [b.label for b in bars] == ["Sí", "2"]

    def test_to_dict(self) -> None:
        assert BarDatum("1", 50.0).to_dict() == {"label": "1", "value": 50.0}


class TestYesNoSplit:
    def test_shares_ignore_ns_nc(self) -> None:
        split = yes_no_split(_dist(1, 1, 1, 2, 0, 0))
        assert split.yes_count == 3
        assert split.no_count == 1
        assert split.yes_percentage == 75.0
        assert split.no_percentage == 25.0

    def test_slices_skip_empty(self) -> None:
        split = yes_no_split(_dist(1, 1))
        assert split.slices() == [BarDatum("Sí", 100.0)]

    def test_no_answers(self) -> None:
        split = yes_no_split(_dist(99))
        assert split.slices() == []
        assert split.yes_percentage == 0.0


class TestRangeBounds:
    def test_remainder_goes_to_front(self) -> None:
        assert range_bounds(10) == [(1, 3), (4, 6), (7, 8), (9, 10)]

    def test_even_split(self) -> None:
        assert range_bounds(12) == [(1, 3), (4, 6), (7, 9), (10, 12)]

    def test_small_scale(self) -> None:
        assert range_bounds(3) == [(1, 1), (2, 2), (3, 3)]

    def test_zero(self) -> None:
        assert range_bounds(0) == []


class TestRangeBars:
    def test_narrow_scale_returns_none(self) -> None:
        assert range_bars(_dist(1, 2), escala_max=10) is None

    def test_wide_scale(self) -> None:
        dist = _dist(1, 2, 5, 8, 11, 12, 99)
        bars = range_bars(dist, escala_max=12)
        assert bars is not None
        assert [(b.label, b.count) for b in bars] == [("1-3", 2), ("4-6", 1), ("7-9", 1), ("10-12", 2)]
        assert [b.percentage for b in bars] == [33.3, 16.7, 16.7, 33.3]

    def test_bar_data(self) -> None:
        bars = range_bars(_dist(1, 20), escala_max=20)
        assert bars is not None
        data = range_bar_data(bars)
        assert data[0] == BarDatum("1-5", 50.0)
        assert data[-1] == BarDatum("16-20", 50.0)


class TestMeanResponse:
    def test_mean(self) -> None:
        assert mean_response(_dist(1, 2, 3, 99)) == pytest.approx(2.0)

    def test_none_when_only_sentinels(self) -> None:
        assert mean_response(_dist(99, 98)) is None


class TestQuestionChart:
    def test_plain_bars_by_default(self) -> None:
        result = question_chart(_dist(1, 1, 2, 99))
        assert result.kind is ChartKind.BARS
        assert result.data == (BarDatum("1", 66.7), BarDatum("2", 33.3))
        assert result.mean == pytest.approx(4 / 3)
        assert (result.n, result.n_valid) == (4, 3)

    def test_yes_no_wins_over_scale(self) -> None:
        result = question_chart(_dist(1, 1, 1, 2, 0), is_yes_or_no=True, escala_max=20)
        assert result.kind is ChartKind.YES_NO
        assert result.data == (BarDatum("Sí", 75.0), BarDatum("No", 25.0))
        assert result.mean is None

    def test_wide_scale_becomes_ranges(self) -> None:
        result = question_chart(_dist(1, 2, 5, 8, 11, 12, 99), escala_max=12)
        assert result.kind is ChartKind.RANGES
        assert [d.label for d in result.data] == ["1-3", "4-6", "7-9", "10-12"]

    def test_narrow_scale_stays_bars(self) -> None:
        result = question_chart(_dist(1, 5, 99), escala_max=5, include_ns_nc=True, ns_nc_label="No sabe")
        assert result.kind is ChartKind.BARS
        assert [d.label for d in result.data] == ["1", "5", "No sabe"]

    def test_to_dict(self) -> None:
        data = question_chart(_dist(1, 2), is_yes_or_no=True).to_dict()
        assert data["kind"] == "yes_no"
        assert data["nValid"] == 2
        assert data["data"] == [{"label": "Sí", "value": 50.0}, {"label": "No", "value": 50.0}]
        assert data["mean"] is None


class TestChartForQuestion:
    def test_yes_no_question_from_catalog(self, aggregator: DistributionAggregator, catalog: QuestionCatalog) -> None:
        outcome = chart_for_question(aggregator, catalog, 88, "Q_88")
        assert outcome.status is OutcomeStatus.OK
        assert outcome.result is not None
        assert outcome.result.kind is ChartKind.YES_NO
        assert outcome.result.data == (BarDatum("Sí", 71.4), BarDatum("No", 28.6))

    def test_closed_question_with_ns_nc(self, aggregator: DistributionAggregator, catalog: QuestionCatalog) -> None:
        outcome = chart_for_question(aggregator, catalog, 31, "Q_31", include_ns_nc=True, ns_nc_label="No sabe")
        assert outcome.result is not None
        assert outcome.result.kind is ChartKind.BARS
        assert [(d.label, d.value) for d in outcome.result.data] == [
            ("1", 40.0), ("2", 40.0), ("3", 20.0), ("No sabe", 0.0),
        ]
        assert outcome.result.mean == pytest.approx(1.8)

    def test_wide_scale_question_from_catalog(
        self, survey_tables: dict[str, list[Row]], settings: PulsoSettings,
    ) -> None:
        survey_tables["preguntas"].append(
            {"id": 9, "pregunta_id": "Q_75", "nombre_categoria": "Perfil", "escala_max": 100}
        )
        store = MemoryStore(tables=survey_tables)
        outcome = chart_for_question(
            DistributionAggregator.from_settings(store, settings), QuestionCatalog(store, settings), 75, "Q_75",
        )
        assert outcome.result is not None
        assert outcome.result.kind is ChartKind.RANGES
        assert [(d.label, d.value) for d in outcome.result.data] == [
            ("1-25", 25.0), ("26-50", 50.0), ("51-75", 25.0), ("76-100", 0.0),
        ]
        assert outcome.result.mean == pytest.approx(42.0)

    def test_column_missing_from_catalog_is_bars(
        self, aggregator: DistributionAggregator, catalog: QuestionCatalog,
    ) -> None:
        outcome = chart_for_question(aggregator, catalog, 3, "Q_3")
        assert outcome.result is not None
        assert outcome.result.kind is ChartKind.BARS

    def test_without_catalog(self, aggregator: DistributionAggregator) -> None:
        outcome = chart_for_question(aggregator, None, 88, "Q_88")
        assert outcome.result is not None
        assert outcome.result.kind is ChartKind.BARS

    def test_no_data_passes_through(self, aggregator: DistributionAggregator, catalog: QuestionCatalog) -> None:
        outcome = chart_for_question(aggregator, catalog, 31, "Q_31", DistributionFilters(municipio_id=77))
        assert outcome.status is OutcomeStatus.NO_DATA
        assert outcome.result is None

    def test_rejected_filter_passes_through(self, aggregator: DistributionAggregator, catalog: QuestionCatalog) -> None:
        outcome = chart_for_question(aggregator, catalog, 31, "Q_31", DistributionFilters(edad_range_id=9))
        assert outcome.status is OutcomeStatus.FAILED
        assert not outcome.retryable

    def test_catalog_failure_is_retryable(
        self, survey_tables: dict[str, list[Row]], settings: PulsoSettings,
    ) -> None:
        store = MemoryStore(tables={"encuestalol": survey_tables["encuestalol"]})
        outcome = chart_for_question(
            DistributionAggregator.from_settings(store, settings), QuestionCatalog(store, settings), 31, "Q_31",
        )
        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.retryable
        assert "preguntas" in (outcome.error or "")
