"""Asset pool field settings and cell overrides."""

from __future__ import annotations

import logging
from typing import Any

from assetunify.errors import NotFoundError, ValidationError
from assetunify.models import CellOverride, FieldSetting
from assetunify.pool.projector import project_asset_pool
from assetunify.repository.base import Repository, TableData

logger = logging.getLogger(__name__)


def normalize_field_name(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _require_field(field: Any) -> str:
    name = normalize_field_name(field)
    if not name:
        raise ValidationError("Field name is required.")
    return name


async def _setting_rows(repo: Repository) -> list[dict]:
    return (await repo.get("asset_pool_fields")).rows


async def load_field_settings(repo: Repository) -> dict[str, FieldSetting]:
    return {
        row["field"]: FieldSetting.model_validate(row) for row in await _setting_rows(repo)
    }


async def ensure_field(
    repo: Repository, field: str, *, editable: bool = False, manual: bool = False
) -> FieldSetting:
    """Register a field if it is unknown; existing settings are left as they are."""
    name = _require_field(field)
    for row in await _setting_rows(repo):
        if row["field"] == name:
            return FieldSetting.model_validate(row)

    setting = FieldSetting(field=name, editable=editable, manual=manual)
    await repo.insert("asset_pool_fields", setting.model_dump())
    logger.info("Asset pool field registered: %s", name)
    return setting


async def add_manual_field(repo: Repository, field: str) -> FieldSetting:
    """Declare a user-managed field, present (possibly empty) on every pool row."""
    name = _require_field(field)
    for row in await _setting_rows(repo):
        if row["field"] == name:
            if not row.get("manual") or not row.get("editable"):
                await repo.update(
                    "asset_pool_fields", row["id"], {"manual": True, "editable": True}
                )
            logger.info("Asset pool field declared manual: %s", name)
            return FieldSetting(field=name, editable=True, manual=True)

    return await ensure_field(repo, name, editable=True, manual=True)


async def set_field_editable(repo: Repository, field: str, editable: bool) -> FieldSetting:
    name = _require_field(field)
    await ensure_field(repo, name)
    for row in await _setting_rows(repo):
        if row["field"] == name:
            if bool(row.get("editable")) != editable:
                await repo.update("asset_pool_fields", row["id"], {"editable": editable})
            return FieldSetting(field=name, editable=editable, manual=bool(row.get("manual")))
    raise NotFoundError(f"Field {name!r} was not found.")


async def remove_field(repo: Repository, field: str) -> None:
    """Drop a field's settings and every override stored for it."""
    name = _require_field(field)
    for row in await _setting_rows(repo):
        if row["field"] == name:
            await repo.remove("asset_pool_fields", row["id"])

    cells = await repo.get("asset_pool_cells")
    kept = [row for row in cells.rows if row.get("field") != name]
    if len(kept) != len(cells.rows):
        await repo.set("asset_pool_cells", TableData(rows=kept, meta=cells.meta))
    logger.info("Asset pool field removed: %s", name)


async def list_overrides(repo: Repository, field: str | None = None) -> list[CellOverride]:
    rows = (await repo.get("asset_pool_cells")).rows
    overrides = [CellOverride.model_validate(row) for row in rows]
    if field is None:
        return overrides
    return [override for override in overrides if override.field == field]


async def upsert_override(
    repo: Repository,
    row_id: str,
    field: str,
    value: Any,
    existing: list[CellOverride] | None = None,
) -> bool:
    """Store an override unless an equal one is already present.

    Args:
        existing: Pre-loaded overrides to search (loaded when omitted)

    Returns:
        True when storage was written
    """
    if existing is None:
        existing = await list_overrides(repo, field)
    current = next(
        (item for item in existing if item.row_id == row_id and item.field == field), None
    )
    if current is not None:
        if current.value == value:
            return False
        await repo.update("asset_pool_cells", current.id, {"value": value})
        current.value = value
        return True

    override_id = await repo.insert(
        "asset_pool_cells", {"row_id": row_id, "field": field, "value": value}
    )
    existing.append(CellOverride(id=override_id, row_id=row_id, field=field, value=value))
    return True


async def delete_override(repo: Repository, override: CellOverride) -> bool:
    if override.id is None:
        return False
    return await repo.remove("asset_pool_cells", override.id)


async def set_cell_value(repo: Repository, row_id: str, field: str, value: Any) -> CellOverride:
    """Set an explicit value on one pool row/field pair.

    Raises:
        ValidationError: If the row id or field name is blank
        NotFoundError: If the row is not part of the projected pool
    """
    row_id = str(row_id or "").strip()
    if not row_id:
        raise ValidationError("Row id is required.")
    name = _require_field(field)

    view = await project_asset_pool(repo)
    if view.find_row(row_id) is None:
        raise NotFoundError(f"Asset pool row {row_id!r} was not found.")

    if value is None:
        value = ""

    await ensure_field(repo, name)
    await upsert_override(repo, row_id, name, value)
    logger.info("Asset pool value stored: row=%s field=%s", row_id, name)
    return CellOverride(row_id=row_id, field=name, value=value)
