"""Demographic segments of the survey and how filters on them are enforced.

All the constant tables (sentinel codes, age ranges, education and
quality-of-life groups, grouping dimensions) live in one frozen
``SurveySchema``.  The aggregator receives a schema instead of reading
module globals, so a different survey wave can swap tables without touching
the maths.

Filters come in two enforcement classes:

- **server**: a direct equality or range condition the store can apply
  (municipality, gender, age range);
- **client**: a coarse group id that maps onto several raw codes (education,
  quality of life).  These need the raw column in the projection and are
  applied to the fetched rows in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from pulso.config import DEFAULT_NS_NC_VALUES
from pulso.store import Predicate, Row

# Column ids in the respondent table
MUNICIPIO_COLUMN = "Q_94"
SEXO_COLUMN = "Q_74"
EDAD_COLUMN = "Q_75"
ESCOLARIDAD_COLUMN = "Q_76"
CALIDAD_VIDA_COLUMN = "Q_2"


class UnknownSegmentError(ValueError):
    """A filter or grouping refers to an id the schema does not declare."""


@dataclass(frozen=True)
class AgeRange:
    """Inclusive age bracket on the exact-age column."""

    id: int
    label: str
    min: int
    max: int


@dataclass(frozen=True)
class CodeGroup:
    """A coarse group that covers several raw answer codes."""

    id: int
    key: str
    label: str
    values: frozenset[int]

    def contains(self, code: object) -> bool:
        if isinstance(code, bool) or not isinstance(code, (int, float)):
            return False
        return code in self.values


@dataclass(frozen=True)
class GroupingDimension:
    """A demographic attribute with a closed, ordered value domain."""

    name: str  # e.g. "sexo"
    column: str
    domain: tuple[tuple[int, str], ...]  # (code, label) in display order
    filter_field: str | None = None  # DistributionFilters field this dimension subsumes

    @property
    def codes(self) -> tuple[int, ...]:
        return tuple(code for code, _ in self.domain)

    def label_for(self, code: int) -> str:
        for c, label in self.domain:
            if c == code:
                return label
        raise UnknownSegmentError(f"{code} is not in the {self.name} domain")


AGE_RANGES: tuple[AgeRange, ...] = (
    AgeRange(1, "18-29", 18, 29),
    AgeRange(2, "30-44", 30, 44),
    AgeRange(3, "45-59", 45, 59),
    AgeRange(4, "60+", 60, 120),
)

# Q_76 holds 17 education codes; 17 is "sin estudios".
EDUCATION_GROUPS: tuple[CodeGroup, ...] = (
    CodeGroup(1, "Sec<", "Sec<", frozenset({1, 2, 3, 4, 17})),
    CodeGroup(2, "Prep", "Prep", frozenset({5, 6, 7, 8, 9, 10})),
    CodeGroup(3, "Univ+", "Univ+", frozenset({11, 12, 13, 14, 15, 16})),
)

# Q_2 is a 1-5 quality-of-life rating.
QUALITY_OF_LIFE_GROUPS: tuple[CodeGroup, ...] = (
    CodeGroup(1, "Baja", "1-2 (Baja)", frozenset({1, 2})),
    CodeGroup(2, "Media", "3 (Media)", frozenset({3})),
    CodeGroup(3, "Alta", "4-5 (Alta)", frozenset({4, 5})),
)

SEXO = GroupingDimension(
    name="sexo",
    column=SEXO_COLUMN,
    domain=((1, "Hombre"), (2, "Mujer")),
    filter_field="sexo_id",
)


@dataclass(frozen=True)
class SurveySchema:
    """Immutable configuration the aggregator works against."""

    ns_nc_values: frozenset[int] = frozenset(DEFAULT_NS_NC_VALUES)
    age_ranges: tuple[AgeRange, ...] = AGE_RANGES
    education_groups: tuple[CodeGroup, ...] = EDUCATION_GROUPS
    quality_of_life_groups: tuple[CodeGroup, ...] = QUALITY_OF_LIFE_GROUPS
    dimensions: tuple[GroupingDimension, ...] = (SEXO,)
    municipio_column: str = MUNICIPIO_COLUMN
    sexo_column: str = SEXO_COLUMN
    edad_column: str = EDAD_COLUMN
    escolaridad_column: str = ESCOLARIDAD_COLUMN
    calidad_vida_column: str = CALIDAD_VIDA_COLUMN

    def with_ns_nc(self, values: list[int] | frozenset[int]) -> SurveySchema:
        return replace(self, ns_nc_values=frozenset(values))

    def age_range(self, range_id: int) -> AgeRange:
        for r in self.age_ranges:
            if r.id == range_id:
                return r
        raise UnknownSegmentError(f"unknown age range id: {range_id}")

    def education_group(self, group_id: int) -> CodeGroup:
        return _find_group(self.education_groups, group_id, "education group")

    def quality_of_life_group(self, group_id: int) -> CodeGroup:
        return _find_group(self.quality_of_life_groups, group_id, "quality-of-life group")

    def dimension(self, name: str) -> GroupingDimension:
        for d in self.dimensions:
            if d.name == name:
                return d
        raise UnknownSegmentError(f"unknown grouping dimension: {name}")


def _find_group(groups: tuple[CodeGroup, ...], group_id: int, what: str) -> CodeGroup:
    for g in groups:
        if g.id == group_id:
            return g
    raise UnknownSegmentError(f"unknown {what} id: {group_id}")


DEFAULT_SCHEMA = SurveySchema()


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DistributionFilters:
    """Demographic filters for a distribution query.  ``None`` = not filtered."""

    municipio_id: int | None = None  # Q_94
    sexo_id: int | None = None  # Q_74 (1 Hombre, 2 Mujer)
    edad_range_id: int | None = None  # AGE_RANGES id, applied to Q_75
    escolaridad_group_id: int | None = None  # EDUCATION_GROUPS id, applied to Q_76
    calidad_vida_group_id: int | None = None  # QUALITY_OF_LIFE_GROUPS id, applied to Q_2

    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (
                self.municipio_id,
                self.sexo_id,
                self.edad_range_id,
                self.escolaridad_group_id,
                self.calidad_vida_group_id,
            )
        )

    def without_dimension(self, dimension: GroupingDimension) -> DistributionFilters:
        """Drop the filter that a grouping on *dimension* subsumes."""
        if dimension.filter_field is None:
            return self
        return replace(self, **{dimension.filter_field: None})


@dataclass(frozen=True)
class ClientFilter:
    """An in-memory row predicate: ``row[column]`` must belong to *group*."""

    column: str
    group: CodeGroup

    def keeps(self, row: Row) -> bool:
        return self.group.contains(row.get(self.column))


@dataclass(frozen=True)
class FilterPlan:
    """Resolved filters, split by where they are enforced."""

    server: tuple[Predicate, ...] = ()
    client: tuple[ClientFilter, ...] = ()

    @property
    def client_columns(self) -> tuple[str, ...]:
        return tuple(f.column for f in self.client)

    def apply_client(self, rows: list[Row]) -> list[Row]:
        if not self.client:
            return rows
        return [r for r in rows if all(f.keeps(r) for f in self.client)]


def plan_filters(filters: DistributionFilters | None, schema: SurveySchema = DEFAULT_SCHEMA) -> FilterPlan:
    """Resolve *filters* against *schema*.

    Raises ``UnknownSegmentError`` for ids the schema does not declare.
    """
    if filters is None:
        return FilterPlan()

    server: list[Predicate] = []
    client: list[ClientFilter] = []

    if filters.municipio_id is not None:
        server.append(Predicate(schema.municipio_column, "eq", filters.municipio_id))
    if filters.sexo_id is not None:
        server.append(Predicate(schema.sexo_column, "eq", filters.sexo_id))
    if filters.edad_range_id is not None:
        age = schema.age_range(filters.edad_range_id)
        server.append(Predicate(schema.edad_column, "gte", age.min))
        server.append(Predicate(schema.edad_column, "lte", age.max))
    if filters.escolaridad_group_id is not None:
        group = schema.education_group(filters.escolaridad_group_id)
        client.append(ClientFilter(schema.escolaridad_column, group))
    if filters.calidad_vida_group_id is not None:
        group = schema.quality_of_life_group(filters.calidad_vida_group_id)
        client.append(ClientFilter(schema.calidad_vida_column, group))

    return FilterPlan(server=tuple(server), client=tuple(client))


def projection(target: str, plan: FilterPlan, *extra: str) -> tuple[str, ...]:
    """Columns to request: target first, then extras and client-filter columns, deduplicated."""
    columns: list[str] = []
    for col in (target, *extra, *plan.client_columns):
        if col not in columns:
            columns.append(col)
    return tuple(columns)
