"""Survey response aggregation: tallies, percentages and grouped distributions."""

from pulso.analysis.chart import (
    ChartKind,
    QuestionChart,
    chart_for_question,
    distribution_to_bar_data,
    mean_response,
    question_chart,
    range_bar_data,
    range_bars,
    yes_no_split,
)
from pulso.analysis.distribution import (
    DistributionAggregator,
    distribution_from_rows,
    grouped_distribution_from_rows,
)
from pulso.analysis.models import (
    BarDatum,
    DistributionItem,
    GroupedDistributionItem,
    GroupedQuestionDistribution,
    Outcome,
    OutcomeStatus,
    QuestionDistribution,
)
from pulso.analysis.segments import DEFAULT_SCHEMA, DistributionFilters, SurveySchema

__all__ = [
    "DEFAULT_SCHEMA",
    "BarDatum",
    "ChartKind",
    "DistributionAggregator",
    "DistributionFilters",
    "DistributionItem",
    "GroupedDistributionItem",
    "GroupedQuestionDistribution",
    "Outcome",
    "OutcomeStatus",
    "QuestionChart",
    "QuestionDistribution",
    "SurveySchema",
    "chart_for_question",
    "distribution_from_rows",
    "distribution_to_bar_data",
    "grouped_distribution_from_rows",
    "mean_response",
    "question_chart",
    "range_bar_data",
    "range_bars",
    "yes_no_split",
]
