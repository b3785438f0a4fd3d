"""Manipulator engine.

A manipulator pins ``field_name = field_value`` on every asset pool row its rule
tree matches. Applying one converges the stored cell overrides for that field
to exactly the current match set, so re-applying an unchanged manipulator
writes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from assetunify.canonical.normalize import natural_key
from assetunify.errors import NotFoundError, ValidationError
from assetunify.models import (
    Manipulator,
    ManipulatorListing,
    ManipulatorPayload,
    ManipulatorView,
    PoolView,
    utcnow,
)
from assetunify.pool.fields import delete_override, ensure_field, list_overrides, upsert_override
from assetunify.pool.projector import project_asset_pool
from assetunify.repository.base import Repository
from assetunify.rules import filter_rows, normalize_definition, serialize_definition

logger = logging.getLogger(__name__)

TABLE = "manipulators"


def coerce_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Invalid manipulator id.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid manipulator id.") from None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def validate_payload(payload: ManipulatorPayload | Mapping[str, Any]) -> dict[str, Any]:
    """Check required fields and normalize the rule tree.

    Accepts camelCase or snake_case keys. ``field_value`` must contain a
    non-blank character but is stored as given.

    Raises:
        ValidationError: If title, field name or field value is missing
    """
    if not isinstance(payload, ManipulatorPayload):
        payload = ManipulatorPayload.model_validate(dict(payload or {}))

    title = _text(payload.title).strip()
    field_name = _text(payload.field_name).strip()
    field_value = _text(payload.field_value)

    if not title:
        raise ValidationError("Title is required.")
    if not field_name:
        raise ValidationError("Field name is required.")
    if not field_value.strip():
        raise ValidationError("Field value is required.")

    return {
        "title": title,
        "description": _text(payload.description).strip(),
        "field_name": field_name,
        "field_value": field_value,
        "definition": serialize_definition(normalize_definition(payload.definition)),
    }


def _load(row: Mapping[str, Any]) -> Manipulator:
    data = dict(row)
    data["definition"] = normalize_definition(data.get("definition"))
    data["description"] = _text(data.get("description"))
    data["managed_row_ids"] = [str(item) for item in data.get("managed_row_ids") or []]
    return Manipulator.model_validate(data)


def _view(record: Manipulator, asset_count: int) -> ManipulatorView:
    return ManipulatorView(
        id=record.id,
        title=record.title,
        description=record.description,
        field_name=record.field_name,
        field_value=record.field_value,
        definition=record.definition,
        asset_count=asset_count,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class ManipulatorEngine:
    """Create, update and apply manipulators against the asset pool."""

    def __init__(self, repo: Repository):
        self.repo = repo

    async def _records(self) -> list[Manipulator]:
        rows = (await self.repo.get(TABLE)).rows
        return sorted((_load(row) for row in rows), key=lambda record: record.id)

    async def get(self, manipulator_id: Any) -> Manipulator:
        """Raises NotFoundError for unknown ids."""
        manipulator_id = coerce_id(manipulator_id)
        for record in await self._records():
            if record.id == manipulator_id:
                return record
        raise NotFoundError("Manipulator not found.")

    async def list(self) -> ManipulatorListing:
        """List manipulators with live match counts. Does not touch overrides."""
        view = await project_asset_pool(self.repo)
        records = sorted(await self._records(), key=lambda record: natural_key(record.title))
        return ManipulatorListing(
            manipulators=[
                _view(record, len(filter_rows(record.definition, view.rows)))
                for record in records
            ],
            field_options=[stat.field for stat in view.field_stats],
        )

    async def create(self, payload: ManipulatorPayload | Mapping[str, Any]) -> ManipulatorView:
        values = validate_payload(payload)
        now = utcnow().isoformat()
        manipulator_id = await self.repo.insert(
            TABLE,
            {
                **values,
                "managed_row_ids": [],
                "managed_field_name": None,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("Manipulator created: id=%s title=%r", manipulator_id, values["title"])
        return await self.execute(manipulator_id)

    async def update(
        self, manipulator_id: Any, payload: ManipulatorPayload | Mapping[str, Any]
    ) -> ManipulatorView:
        """Replace a manipulator's settings and re-apply its effects.

        Raises:
            ValidationError: Invalid payload or id
            NotFoundError: Unknown manipulator
        """
        current = await self.get(manipulator_id)
        values = validate_payload(payload)

        stored = {
            "title": current.title,
            "description": current.description,
            "field_name": current.field_name,
            "field_value": current.field_value,
            "definition": serialize_definition(current.definition),
        }
        if values != stored:
            await self.repo.update(TABLE, current.id, {**values, "updated_at": utcnow().isoformat()})
            logger.info("Manipulator updated: id=%s", current.id)

        return await self.execute(current.id)

    async def execute(self, manipulator_id: Any) -> ManipulatorView:
        """Re-apply one manipulator against the current pool."""
        record = await self.get(manipulator_id)
        view = await project_asset_pool(self.repo)
        matched = await self.apply(record, view)
        return _view(record, len(matched))

    async def run_all(self) -> list[ManipulatorView]:
        """Re-apply every manipulator in id order."""
        results = []
        for record in await self._records():
            view = await project_asset_pool(self.repo)
            matched = await self.apply(record, view)
            results.append(_view(record, len(matched)))
        logger.info("Applied %d manipulators", len(results))
        return results

    async def delete(self, manipulator_id: Any) -> None:
        """Purge the overrides a manipulator manages, then drop it."""
        record = await self.get(manipulator_id)
        field = record.managed_field_name or record.field_name
        managed = set(record.managed_row_ids)

        for override in await list_overrides(self.repo, field):
            if override.row_id in managed:
                await delete_override(self.repo, override)

        await self.repo.remove(TABLE, record.id)
        logger.info("Manipulator deleted: id=%s", record.id)

    async def apply(self, record: Manipulator, view: PoolView) -> list[str]:
        """Converge overrides on the record's field to its current match set.

        Args:
            record: Stored manipulator
            view: Current asset pool projection

        Returns:
            Ids of matched pool rows, in pool order
        """
        field = record.field_name
        await ensure_field(self.repo, field)

        matched = [row.id for row in filter_rows(record.definition, view.rows)]
        matched_set = set(matched)

        overrides = await list_overrides(self.repo, field)
        written = 0
        for row_id in matched:
            if await upsert_override(self.repo, row_id, field, record.field_value, overrides):
                written += 1

        removed = 0
        for override in overrides:
            if override.row_id not in matched_set and await delete_override(self.repo, override):
                removed += 1

        previous_field = record.managed_field_name
        if previous_field and previous_field != field:
            previous_ids = set(record.managed_row_ids)
            for override in await list_overrides(self.repo, previous_field):
                if override.row_id in previous_ids and await delete_override(self.repo, override):
                    removed += 1

        if matched != record.managed_row_ids or record.managed_field_name != field:
            await self.repo.update(
                TABLE, record.id, {"managed_row_ids": matched, "managed_field_name": field}
            )

        if written or removed:
            logger.info(
                "Manipulator applied: id=%s field=%s matched=%d written=%d removed=%d",
                record.id,
                field,
                len(matched),
                written,
                removed,
            )
        return matched
