"""Asset pool projection.

Turns raw table rows, their header→field mappings, declared field settings and
per-cell overrides into the logical row set consumed by manipulators, group
selectors and reporting. Nothing here is persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from assetunify.canonical.merge import entry, has_value, merge_first_non_empty
from assetunify.errors import IntegrityWarning
from assetunify.models import (
    CellOverride,
    FieldSetting,
    FieldStat,
    MappingPair,
    PoolRow,
    PoolView,
    RawRow,
    RawTable,
    RowId,
)
from assetunify.repository.base import Repository

logger = logging.getLogger(__name__)


def project_row(
    table: RawTable,
    row: RawRow,
    pairs: Sequence[MappingPair],
    overrides: Mapping[str, Mapping[str, object]],
    manual_fields: Iterable[str],
) -> PoolRow:
    """Project one raw row.

    Every mapped field starts as "" and takes the first non-empty raw value in
    mapping order; overrides then win unconditionally; manual fields are
    guaranteed to exist.
    """
    targets = dict.fromkeys(pair.asset_field for pair in pairs)
    values = merge_first_non_empty(
        (entry(pair.asset_field, row.data.get(pair.raw_header)) for pair in pairs),
        initial={field: "" for field in targets},
    )

    row_id = str(RowId.for_row(table.id, row.row_key, row.row_index))
    values.update(overrides.get(row_id, {}))
    for field in manual_fields:
        values.setdefault(field, "")

    return PoolRow(
        id=row_id,
        raw_table_id=table.id,
        raw_table_title=table.title,
        row_index=row.row_index,
        row_key=row.row_key,
        values=values,
    )


def project_pool(
    tables: Mapping[int, RawTable],
    rows: Iterable[RawRow],
    mappings: Mapping[int, Sequence[MappingPair]],
    settings: Sequence[FieldSetting] = (),
    overrides: Sequence[CellOverride] = (),
) -> PoolView:
    """Build the asset pool view from already loaded data.

    Rows whose table is missing are skipped and logged; rows of archived
    tables are skipped silently.
    """
    settings_by_field = {setting.field: setting for setting in settings}
    manual_fields = [setting.field for setting in settings if setting.manual]

    overrides_by_row: dict[str, dict[str, object]] = {}
    for override in overrides:
        overrides_by_row.setdefault(override.row_id, {})[override.field] = override.value

    orphaned: dict[int, int] = {}
    projected: list[PoolRow] = []
    for row in sorted(rows, key=lambda item: (item.raw_table_id, item.row_index)):
        table = tables.get(row.raw_table_id)
        if table is None:
            orphaned[row.raw_table_id] = orphaned.get(row.raw_table_id, 0) + 1
            continue
        if table.archived:
            continue
        projected.append(
            project_row(table, row, mappings.get(table.id, ()), overrides_by_row, manual_fields)
        )

    for table_id, count in orphaned.items():
        logger.warning(
            "Skipped %d asset pool rows referencing missing raw table %s",
            count,
            table_id,
            extra={"category": IntegrityWarning.__name__},
        )

    known: dict[str, None] = {}
    for table_id in sorted(mappings):
        known.update(dict.fromkeys(pair.asset_field for pair in mappings[table_id]))
    known.update(dict.fromkeys(manual_fields))
    known.update(dict.fromkeys(settings_by_field))
    known.update(dict.fromkeys(override.field for override in overrides))

    field_stats = [
        FieldStat(
            field=field,
            count=sum(1 for row in projected if has_value(row.values.get(field))),
        )
        for field in known
    ]

    def visible(stat: FieldStat) -> bool:
        setting = settings_by_field.get(stat.field)
        return stat.count > 0 or (setting is not None and (setting.editable or setting.manual))

    columns = [stat.field for stat in field_stats if visible(stat)]

    return PoolView(
        columns=columns,
        rows=projected,
        field_stats=field_stats,
        field_settings={
            field: settings_by_field.get(field, FieldSetting(field=field)) for field in known
        },
    )


class AssetPoolProjector:
    """Loads pool inputs from the repository and projects them."""

    def __init__(self, repo: Repository):
        self.repo = repo

    async def load_mappings(self) -> dict[int, list[MappingPair]]:
        mappings: dict[int, list[MappingPair]] = {}
        for row in (await self.repo.get("raw_mappings")).rows:
            table_id = row.get("raw_table_id")
            if table_id in mappings:
                continue
            mappings[table_id] = [
                MappingPair.model_validate(pair) for pair in row.get("pairs") or []
            ]
        return mappings

    async def project(self) -> PoolView:
        """Project the current asset pool."""
        tables = {
            row["id"]: RawTable.model_validate(row)
            for row in (await self.repo.get("raw_tables")).rows
        }
        rows = [RawRow.model_validate(row) for row in (await self.repo.get("raw_rows")).rows]
        settings = [
            FieldSetting.model_validate(row)
            for row in (await self.repo.get("asset_pool_fields")).rows
        ]
        overrides = [
            CellOverride.model_validate(row)
            for row in (await self.repo.get("asset_pool_cells")).rows
        ]

        view = project_pool(tables, rows, await self.load_mappings(), settings, overrides)
        logger.debug(
            "Asset pool projected: %d rows, %d columns", len(view.rows), len(view.columns)
        )
        return view


async def project_asset_pool(repo: Repository) -> PoolView:
    """Convenience function: project the pool from repository state."""
    return await AssetPoolProjector(repo).project()
