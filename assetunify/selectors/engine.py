"""Group asset selectors and group coverage.

Selectors are read-only classifiers: rule trees scoped to a group that decide
which asset pool rows belong to it. Nothing here writes pool data.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from assetunify.canonical.normalize import natural_key
from assetunify.errors import NotFoundError, ValidationError
from assetunify.models import (
    CoverageGroup,
    Group,
    GroupCoverage,
    GroupSelector,
    PoolRow,
    PoolView,
    SelectorAssets,
    SelectorOverview,
    SelectorPayload,
    SelectorView,
    utcnow,
)
from assetunify.pool.projector import project_asset_pool
from assetunify.repository.base import Repository
from assetunify.rules import filter_rows, normalize_definition, serialize_definition
from assetunify.selectors.groups import list_groups, require_group

logger = logging.getLogger(__name__)

TABLE = "group_asset_selectors"


def calculate_coverage(
    rows: Sequence[PoolRow],
    groups: Iterable[Group],
    selectors: Iterable[GroupSelector],
) -> GroupCoverage:
    """Union selector matches per group and across all groups.

    A row matching several selectors of one group counts once for that group.
    Rows without an id can never be matched.
    """
    by_group: dict[str, list[GroupSelector]] = {}
    for selector in selectors:
        by_group.setdefault(selector.group_slug, []).append(selector)

    matched_all: set[str] = set()
    entries = []
    for group in groups:
        matched: set[str] = set()
        for selector in by_group.get(group.slug, []):
            matched.update(row.id for row in filter_rows(selector.definition, rows) if row.id)
        matched_all |= matched
        entries.append(CoverageGroup(slug=group.slug, title=group.title, asset_count=len(matched)))

    unmatched = [row for row in rows if not row.id or row.id not in matched_all]
    return GroupCoverage(
        total_assets=len(rows),
        unmatched_count=len(unmatched),
        groups=entries,
        unmatched_rows=unmatched,
    )


def _load(row: Mapping[str, Any]) -> GroupSelector:
    data = dict(row)
    data["definition"] = normalize_definition(data.get("definition"))
    data["description"] = "" if data.get("description") is None else str(data["description"])
    return GroupSelector.model_validate(data)


def _view(selector: GroupSelector, asset_count: int) -> SelectorView:
    return SelectorView(
        id=selector.id,
        name=selector.name,
        description=selector.description,
        definition=selector.definition,
        asset_count=asset_count,
        created_at=selector.created_at,
        updated_at=selector.updated_at,
    )


def _coerce_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Invalid selector id.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid selector id.") from None


def _payload(payload: SelectorPayload | Mapping[str, Any]) -> SelectorPayload:
    if isinstance(payload, SelectorPayload):
        return payload
    return SelectorPayload.model_validate(dict(payload or {}))


class GroupSelectorEngine:
    """Manage selectors for groups and compute group coverage."""

    def __init__(self, repo: Repository):
        self.repo = repo

    async def _selectors(self, group_slug: str | None = None) -> list[GroupSelector]:
        selectors = [_load(row) for row in (await self.repo.get(TABLE)).rows]
        if group_slug is not None:
            selectors = [item for item in selectors if item.group_slug == group_slug]
        return sorted(selectors, key=lambda item: item.id)

    async def _require(self, group_slug: str, selector_id: Any) -> GroupSelector:
        selector_id = _coerce_id(selector_id)
        for selector in await self._selectors(group_slug):
            if selector.id == selector_id:
                return selector
        raise NotFoundError("Selector not found.")

    async def get_overview(self, group_slug: str) -> SelectorOverview:
        """List a group's selectors with live match counts."""
        group = await require_group(self.repo, group_slug)
        view = await project_asset_pool(self.repo)
        return SelectorOverview(
            group=group,
            selectors=[
                _view(selector, len(filter_rows(selector.definition, view.rows)))
                for selector in sorted(
                    await self._selectors(group.slug), key=lambda item: natural_key(item.name)
                )
            ],
            field_options=[stat.field for stat in view.field_stats],
        )

    async def create(
        self, group_slug: str, payload: SelectorPayload | Mapping[str, Any]
    ) -> SelectorView:
        """Create a selector.

        Raises:
            NotFoundError: Unknown group
            ValidationError: Blank name
        """
        group = await require_group(self.repo, group_slug)
        payload = _payload(payload)

        name = str(payload.name or "").strip()
        if not name:
            raise ValidationError("Selector name is required.")

        definition = normalize_definition(payload.definition)
        now = utcnow().isoformat()
        selector_id = await self.repo.insert(
            TABLE,
            {
                "group_slug": group.slug,
                "name": name,
                "description": str(payload.description or "").strip(),
                "definition": serialize_definition(definition),
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("Selector created: group=%s id=%s", group.slug, selector_id)
        return await self._count(await self._require(group.slug, selector_id))

    async def update(
        self, group_slug: str, selector_id: Any, payload: SelectorPayload | Mapping[str, Any]
    ) -> SelectorView:
        """Update a selector; omitted name or definition keep their stored values.

        Raises:
            NotFoundError: Unknown group or selector
            ValidationError: Name resolves to blank
        """
        group = await require_group(self.repo, group_slug)
        current = await self._require(group.slug, selector_id)
        payload = _payload(payload)

        name = str(payload.name if payload.name is not None else current.name).strip()
        if not name:
            raise ValidationError("Selector name is required.")

        definition = (
            current.definition
            if payload.definition is None
            else normalize_definition(payload.definition)
        )
        description = (
            current.description if payload.description is None else str(payload.description).strip()
        )

        await self.repo.update(
            TABLE,
            current.id,
            {
                "name": name,
                "description": description,
                "definition": serialize_definition(definition),
                "updated_at": utcnow().isoformat(),
            },
        )
        logger.info("Selector updated: group=%s id=%s", group.slug, current.id)
        return await self._count(await self._require(group.slug, current.id))

    async def delete(self, group_slug: str, selector_id: Any) -> None:
        group = await require_group(self.repo, group_slug)
        selector = await self._require(group.slug, selector_id)
        await self.repo.remove(TABLE, selector.id)
        logger.info("Selector deleted: group=%s id=%s", group.slug, selector.id)

    async def get_selector_assets(self, group_slug: str, selector_id: Any) -> SelectorAssets:
        """Rows currently matched by one selector, with the pool's columns."""
        group = await require_group(self.repo, group_slug)
        selector = await self._require(group.slug, selector_id)
        view = await project_asset_pool(self.repo)
        rows = filter_rows(selector.definition, view.rows)
        return SelectorAssets(selector=_view(selector, len(rows)), columns=view.columns, rows=rows)

    async def calculate_group_asset_coverage(self, view: PoolView | None = None) -> GroupCoverage:
        """Coverage of the current pool by every group's selectors."""
        if view is None:
            view = await project_asset_pool(self.repo)
        coverage = calculate_coverage(
            view.rows, await list_groups(self.repo), await self._selectors()
        )
        logger.debug(
            "Group coverage: total=%d unmatched=%d",
            coverage.total_assets,
            coverage.unmatched_count,
        )
        return coverage

    async def _count(self, selector: GroupSelector) -> SelectorView:
        view = await project_asset_pool(self.repo)
        return _view(selector, len(filter_rows(selector.definition, view.rows)))
