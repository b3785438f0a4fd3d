"""Unit tests for groups, group asset selectors and coverage."""

from __future__ import annotations

import pytest

from assetunify.errors import NotFoundError, ValidationError
from assetunify.models import Group, GroupSelector, PoolRow
from assetunify.rules import GroupMode, Operator, Rule, RuleGroup
from assetunify.selectors import GroupSelectorEngine, calculate_coverage, create_group, list_groups


def _id_in(*ids: str) -> RuleGroup:
    return RuleGroup(
        mode=GroupMode.ANY,
        children=[Rule(field="n", operator=Operator.EQUALS, value=value) for value in ids],
    )


def _selector(selector_id: int, slug: str, definition) -> GroupSelector:
    return GroupSelector(id=selector_id, group_slug=slug, name=f"s{selector_id}", definition=definition)


class TestCalculateCoverage:
    """Pure coverage computation."""

    def test_overlapping_groups(self):
        rows = [PoolRow(id=f"1:{n}", values={"n": str(n)}) for n in range(1, 5)]
        groups = [Group(id=1, slug="a", title="A"), Group(id=2, slug="b", title="B")]
        selectors = [_selector(1, "a", _id_in("1", "2")), _selector(2, "b", _id_in("2", "3"))]

        coverage = calculate_coverage(rows, groups, selectors)

        assert coverage.total_assets == 4
        assert coverage.unmatched_count == 1
        assert [row.id for row in coverage.unmatched_rows] == ["1:4"]
        assert [(g.slug, g.asset_count) for g in coverage.groups] == [("a", 2), ("b", 2)]

    def test_selectors_in_one_group_are_unioned(self):
        rows = [PoolRow(id=f"1:{n}", values={"n": str(n)}) for n in range(1, 4)]
        groups = [Group(id=1, slug="a", title="A")]
        selectors = [_selector(1, "a", _id_in("1", "2")), _selector(2, "a", _id_in("2", "3"))]

        coverage = calculate_coverage(rows, groups, selectors)

        assert coverage.groups[0].asset_count == 3
        assert coverage.unmatched_count == 0

    def test_group_without_selectors(self):
        rows = [PoolRow(id="1:1", values={})]
        coverage = calculate_coverage(rows, [Group(id=1, slug="a", title="A")], [])
        assert coverage.groups[0].asset_count == 0
        assert coverage.unmatched_count == 1

    def test_rows_without_id_are_unmatched(self):
        rows = [PoolRow(id="", values={"n": "1"})]
        coverage = calculate_coverage(rows, [Group(id=1, slug="a", title="A")], [_selector(1, "a", RuleGroup())])
        assert coverage.groups[0].asset_count == 0
        assert coverage.unmatched_count == 1


class TestGroups:
    """Group creation."""

    @pytest.mark.asyncio
    async def test_slugs_are_unique(self, repo):
        first = await create_group(repo, "Web Servers")
        second = await create_group(repo, "Web servers!")
        third = await create_group(repo, "Other", slug="Web Servers")

        assert [first.slug, second.slug, third.slug] == ["web-servers", "web-servers-2", "web-servers-3"]
        assert [group.title for group in await list_groups(repo)] == ["Other", "Web Servers", "Web servers!"]

    @pytest.mark.asyncio
    async def test_title_required(self, repo):
        with pytest.raises(ValidationError):
            await create_group(repo, "  ")


class TestSelectorEngine:
    """Selector CRUD and live counts."""

    @pytest.mark.asyncio
    async def test_create_and_overview(self, repo, server_pool):
        group = await create_group(repo, "Web")
        engine = GroupSelectorEngine(repo)

        created = await engine.create(
            group.slug,
            {
                "name": "Web role",
                "definition": {"type": "group", "mode": "all", "children": [{"type": "rule", "field": "role", "value": "web"}]},
            },
        )
        overview = await engine.get_overview(group.slug)

        assert created.asset_count == 2
        assert overview.group.slug == "web"
        assert [(s.name, s.asset_count) for s in overview.selectors] == [("Web role", 2)]
        assert "hostname" in overview.field_options

    @pytest.mark.asyncio
    async def test_overview_sorted_by_name(self, repo, server_pool):
        group = await create_group(repo, "Web")
        engine = GroupSelectorEngine(repo)
        for name in ["Rule 10", "rule 2", "Alpha"]:
            await engine.create(group.slug, {"name": name})

        overview = await engine.get_overview(group.slug)

        assert [s.name for s in overview.selectors] == ["Alpha", "rule 2", "Rule 10"]

    @pytest.mark.asyncio
    async def test_selectors_do_not_write_pool_data(self, repo, server_pool):
        group = await create_group(repo, "Web")
        repo.reset_writes()

        await GroupSelectorEngine(repo).create(group.slug, {"name": "All"})

        assert set(repo.writes) == {"group_asset_selectors"}

    @pytest.mark.asyncio
    async def test_name_required(self, repo):
        group = await create_group(repo, "Web")
        with pytest.raises(ValidationError):
            await GroupSelectorEngine(repo).create(group.slug, {"name": " "})

    @pytest.mark.asyncio
    async def test_unknown_group(self, repo):
        with pytest.raises(NotFoundError):
            await GroupSelectorEngine(repo).get_overview("missing")

    @pytest.mark.asyncio
    async def test_update_keeps_omitted_values(self, repo, server_pool):
        group = await create_group(repo, "Web")
        engine = GroupSelectorEngine(repo)
        created = await engine.create(
            group.slug,
            {"name": "Big", "definition": {"type": "rule", "field": "cpu", "operator": "greater", "value": "4"}},
        )

        renamed = await engine.update(group.slug, created.id, {"name": "Large"})
        assert renamed.name == "Large"
        assert renamed.asset_count == 2

        redefined = await engine.update(group.slug, created.id, {"definition": {"children": []}})
        assert redefined.name == "Large"
        assert redefined.asset_count == 4

    @pytest.mark.asyncio
    async def test_selector_assets_and_delete(self, repo, server_pool):
        group = await create_group(repo, "DB")
        engine = GroupSelectorEngine(repo)
        created = await engine.create(
            group.slug, {"name": "db", "definition": {"type": "rule", "field": "role", "operator": "regex", "value": "^data"}}
        )

        assets = await engine.get_selector_assets(group.slug, created.id)
        assert [row.id for row in assets.rows] == ["1:A-3"]
        assert assets.columns == ["hostname", "role", "cpu"]

        await engine.delete(group.slug, created.id)
        with pytest.raises(NotFoundError):
            await engine.get_selector_assets(group.slug, created.id)

    @pytest.mark.asyncio
    async def test_selector_scoped_to_group(self, repo, server_pool):
        web = await create_group(repo, "Web")
        other = await create_group(repo, "Other")
        engine = GroupSelectorEngine(repo)
        created = await engine.create(web.slug, {"name": "All"})

        with pytest.raises(NotFoundError):
            await engine.delete(other.slug, created.id)

    @pytest.mark.asyncio
    async def test_group_asset_coverage(self, repo, server_pool):
        web = await create_group(repo, "Web")
        db = await create_group(repo, "Database")
        engine = GroupSelectorEngine(repo)
        await engine.create(web.slug, {"name": "w", "definition": {"type": "rule", "field": "role", "value": "web"}})
        await engine.create(db.slug, {"name": "d", "definition": {"type": "rule", "field": "role", "value": "database"}})

        coverage = await engine.calculate_group_asset_coverage()

        assert coverage.total_assets == 4
        assert coverage.unmatched_count == 1
        assert {(g.slug, g.asset_count) for g in coverage.groups} == {("web", 2), ("database", 1)}
