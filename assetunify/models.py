"""AssetUnify Pydantic models for type-safe data validation.

Repository rows are stored in snake_case; models exposed to external callers
also accept and emit the camelCase wire names via aliases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from assetunify.rules.nodes import RuleGroup, RuleNode


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for models with camelCase wire aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DuplicatePolicy(str, Enum):
    """What to do with repeated row keys on raw table import."""

    ERROR = "error"
    FIRST = "first"


# --- Unification -----------------------------------------------------------


class Source(BaseModel):
    """An uploaded data source."""

    id: int
    name: str
    created_at: datetime = Field(default_factory=utcnow)


class SourceRow(BaseModel):
    """One ingested record from one source table."""

    id: int | None = None
    source_id: int
    row_index: int
    data: dict[str, Any] = Field(default_factory=dict)


class ColumnMapping(BaseModel):
    """Source column -> unified column assignment."""

    id: int | None = None
    source_id: int
    source_col: str
    unified_col: str


class UnifiedAsset(BaseModel):
    """Canonical, deduplicated asset produced by a rebuild."""

    id: int
    canonical_name: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    source_ids: list[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "canonical_name": "web-server-01",
                "fields": {"hostname": "web-server-01", "owner": "ops"},
                "source_ids": [1, 2],
                "created_at": "2025-01-15T10:30:00Z",
                "updated_at": "2025-01-15T10:30:00Z",
            }
        }
    )


# --- Raw tables and the asset pool -------------------------------------------


class MappingPair(WireModel):
    """Raw header -> asset field assignment for one raw table."""

    raw_header: str
    asset_field: str


class RawTable(BaseModel):
    """One imported spreadsheet-derived document."""

    id: int
    title: str
    headers: list[str] = Field(default_factory=list)
    id_column: str | None = None
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.ERROR
    source_file_name: str | None = None
    uploaded_at: datetime | None = None
    archived: bool = False
    archived_at: datetime | None = None


class RawRow(BaseModel):
    """One row of a raw table."""

    id: int | None = None
    raw_table_id: int
    row_index: int
    row_key: str | int | None = None
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RowId:
    """Composite identity of an asset pool row.

    Rendered as ``"{table_id}:{row_key}"``. Parsing splits on the first
    separator only, so row keys may themselves contain the separator.
    """

    table_id: int
    row_key: str

    SEPARATOR = ":"

    def __str__(self) -> str:
        return f"{self.table_id}{self.SEPARATOR}{self.row_key}"

    @classmethod
    def parse(cls, value: str) -> RowId:
        """Parse a rendered row id.

        Raises:
            ValueError: If the value has no separator or a non-integer table id
        """
        table_part, separator, key = str(value).partition(cls.SEPARATOR)
        if not separator:
            raise ValueError(f"Invalid asset pool row id: {value!r}")
        return cls(table_id=int(table_part), row_key=key)

    @classmethod
    def for_row(cls, table_id: int, row_key: Any, row_index: int) -> RowId:
        key = row_index if row_key is None or row_key == "" else row_key
        return cls(table_id=table_id, row_key=str(key))


class PoolRow(WireModel):
    """Projected logical record exposed to rules and reporting."""

    id: str
    raw_table_id: int | None = None
    raw_table_title: str | None = None
    row_index: int | None = None
    row_key: str | int | None = None
    values: dict[str, Any] = Field(default_factory=dict)


class FieldSetting(BaseModel):
    """Per-field metadata."""

    field: str
    editable: bool = False
    manual: bool = False


class FieldStat(BaseModel):
    """Live non-empty value count of one field across the pool."""

    field: str
    count: int = 0


class CellOverride(BaseModel):
    """Explicit value on one pool row/field pair."""

    id: int | None = None
    row_id: str
    field: str
    value: Any = ""


class PoolView(WireModel):
    """Result of one asset pool projection."""

    columns: list[str] = Field(default_factory=list)
    rows: list[PoolRow] = Field(default_factory=list)
    field_stats: list[FieldStat] = Field(default_factory=list)
    field_settings: dict[str, FieldSetting] = Field(default_factory=dict)

    def row_ids(self) -> list[str]:
        return [row.id for row in self.rows]

    def find_row(self, row_id: str) -> PoolRow | None:
        return next((row for row in self.rows if row.id == row_id), None)


# --- Manipulators ---------------------------------------------------------------


class ManipulatorPayload(WireModel):
    """Create/update input for a manipulator."""

    title: Any = None
    description: Any = None
    field_name: Any = None
    field_value: Any = None
    definition: Any = None


class Manipulator(BaseModel):
    """Stored manipulator record."""

    id: int
    title: str
    description: str = ""
    field_name: str
    field_value: str
    definition: RuleNode = Field(default_factory=RuleGroup)
    managed_row_ids: list[str] = Field(default_factory=list)
    managed_field_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ManipulatorView(WireModel):
    """Manipulator with its live match count."""

    id: int
    title: str
    description: str = ""
    field_name: str
    field_value: str
    definition: RuleNode
    asset_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ManipulatorListing(WireModel):
    manipulators: list[ManipulatorView] = Field(default_factory=list)
    field_options: list[str] = Field(default_factory=list)


# --- Groups and selectors -------------------------------------------------------


class Group(BaseModel):
    """Asset group scoped by selectors."""

    id: int
    slug: str
    title: str


class SelectorPayload(WireModel):
    """Create/update input for a group asset selector."""

    name: Any = None
    description: Any = None
    definition: Any = None


class GroupSelector(BaseModel):
    """Stored group asset selector record."""

    id: int
    group_slug: str
    name: str
    description: str = ""
    definition: RuleNode = Field(default_factory=RuleGroup)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SelectorView(WireModel):
    """Selector with its live match count."""

    id: int
    name: str
    description: str = ""
    definition: RuleNode
    asset_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SelectorOverview(WireModel):
    group: Group
    selectors: list[SelectorView] = Field(default_factory=list)
    field_options: list[str] = Field(default_factory=list)


class SelectorAssets(WireModel):
    selector: SelectorView
    columns: list[str] = Field(default_factory=list)
    rows: list[PoolRow] = Field(default_factory=list)


# --- Coverage -------------------------------------------------------------------


class CoverageGroup(WireModel):
    slug: str = ""
    title: str = ""
    asset_count: int = 0


class GroupCoverage(WireModel):
    """Live coverage of the pool by group selectors."""

    total_assets: int = 0
    unmatched_count: int = 0
    groups: list[CoverageGroup] = Field(default_factory=list)
    unmatched_rows: list[PoolRow] = Field(default_factory=list)


class UnmatchedAsset(WireModel):
    id: str | None = None
    raw_table_title: str | None = None
    values: dict[str, Any] = Field(default_factory=dict)


class CoverageReport(WireModel):
    """Persisted coverage snapshot."""

    generated_at: str | None = None
    total_assets: int = 0
    unmatched_count: int = 0
    groups: list[CoverageGroup] = Field(default_factory=list)
    unmatched_assets: list[UnmatchedAsset] = Field(default_factory=list)
    unmatched_columns: list[str] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
