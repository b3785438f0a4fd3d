"""Unit tests for the manipulator engine.

Validates idempotent application and override reconciliation.
"""

from __future__ import annotations

import pytest

from assetunify.errors import NotFoundError, ValidationError
from assetunify.manipulators import ManipulatorEngine, natural_key
from assetunify.pool import project_asset_pool
from assetunify.pool.fields import list_overrides, set_cell_value

WEB_RULE = {
    "type": "group",
    "mode": "all",
    "children": [{"type": "rule", "field": "role", "operator": "equals", "value": "web"}],
}


def _payload(**overrides) -> dict:
    payload = {
        "title": "Web tier",
        "description": "",
        "fieldName": "tier",
        "fieldValue": "frontend",
        "definition": WEB_RULE,
    }
    payload.update(overrides)
    return payload


async def _tier_overrides(repo, field: str = "tier") -> dict[str, str]:
    return {o.row_id: o.value for o in await list_overrides(repo, field)}


class TestValidation:
    """Payload validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "missing", [{"title": " "}, {"fieldName": ""}, {"fieldValue": "   "}, {"fieldValue": None}]
    )
    async def test_required_fields(self, repo, missing):
        with pytest.raises(ValidationError):
            await ManipulatorEngine(repo).create(_payload(**missing))

    @pytest.mark.asyncio
    async def test_field_value_stored_unstripped(self, repo, server_pool):
        view = await ManipulatorEngine(repo).create(_payload(fieldValue=" front "))
        assert view.field_value == " front "

    @pytest.mark.asyncio
    async def test_snake_case_payload(self, repo, server_pool):
        view = await ManipulatorEngine(repo).create(
            {"title": "T", "field_name": "tier", "field_value": "x", "definition": WEB_RULE}
        )
        assert view.asset_count == 2

    @pytest.mark.asyncio
    async def test_unknown_and_invalid_ids(self, repo):
        engine = ManipulatorEngine(repo)
        with pytest.raises(NotFoundError):
            await engine.update(5, _payload())
        with pytest.raises(ValidationError):
            await engine.get("abc")


class TestApplyEffects:
    """Applying manipulators to the pool."""

    @pytest.mark.asyncio
    async def test_create_sets_field_on_matches(self, repo, server_pool):
        view = await ManipulatorEngine(repo).create(_payload())

        assert view.asset_count == 2
        assert await _tier_overrides(repo) == {"1:A-1": "frontend", "1:A-2": "frontend"}

        fields = (await repo.get("asset_pool_fields")).rows
        assert [(row["field"], row["editable"], row["manual"]) for row in fields] == [
            ("tier", False, False)
        ]

        stored = (await repo.get("manipulators")).rows[0]
        assert stored["managed_row_ids"] == ["1:A-1", "1:A-2"]
        assert stored["managed_field_name"] == "tier"

        pool = await project_asset_pool(repo)
        assert pool.find_row("1:A-1").values["tier"] == "frontend"
        assert "tier" in pool.columns

    @pytest.mark.asyncio
    async def test_update_with_same_definition_writes_nothing(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        created = await engine.create(_payload())
        await engine.update(created.id, _payload())

        repo.reset_writes()
        await engine.update(created.id, _payload())

        assert repo.writes == {}

    @pytest.mark.asyncio
    async def test_shrinking_match_set_removes_stale_overrides(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        created = await engine.create(_payload())
        before = {o.row_id: o.id for o in await list_overrides(repo, "tier")}

        narrowed = {
            "type": "group",
            "mode": "all",
            "children": [{"type": "rule", "field": "hostname", "operator": "equals", "value": "web-01"}],
        }
        view = await engine.update(created.id, _payload(definition=narrowed))

        assert view.asset_count == 1
        after = {o.row_id: o.id for o in await list_overrides(repo, "tier")}
        assert after == {"1:A-1": before["1:A-1"]}

    @pytest.mark.asyncio
    async def test_reconciliation_removes_foreign_overrides_on_field(self, repo, server_pool):
        await set_cell_value(repo, "1:A-3", "tier", "manual")
        await ManipulatorEngine(repo).create(_payload())
        assert "1:A-3" not in await _tier_overrides(repo)

    @pytest.mark.asyncio
    async def test_field_rename_purges_old_field(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        created = await engine.create(_payload())
        await engine.update(created.id, _payload(fieldName="layer"))

        assert await _tier_overrides(repo) == {}
        assert await _tier_overrides(repo, "layer") == {"1:A-1": "frontend", "1:A-2": "frontend"}
        stored = await engine.get(created.id)
        assert stored.managed_field_name == "layer"

    @pytest.mark.asyncio
    async def test_value_change_rewrites_overrides(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        created = await engine.create(_payload())
        await engine.update(created.id, _payload(fieldValue="edge"))
        assert set((await _tier_overrides(repo)).values()) == {"edge"}

    @pytest.mark.asyncio
    async def test_execute_converges_after_pool_change(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        created = await engine.create(_payload())
        await set_cell_value(repo, "1:A-4", "role", "web")

        view = await engine.execute(created.id)

        assert view.asset_count == 3
        assert set(await _tier_overrides(repo)) == {"1:A-1", "1:A-2", "1:A-4"}

    @pytest.mark.asyncio
    async def test_delete_purges_managed_overrides(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        created = await engine.create(_payload())
        await engine.delete(created.id)

        assert await _tier_overrides(repo) == {}
        assert (await repo.get("manipulators")).rows == []
        with pytest.raises(NotFoundError):
            await engine.delete(created.id)


class TestListing:
    """Listing and bulk application."""

    @pytest.mark.asyncio
    async def test_list_is_read_only_and_naturally_sorted(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        await engine.create(_payload(title="Rule 10"))
        await engine.create(_payload(title="rule 2", fieldName="other"))

        repo.reset_writes()
        listing = await engine.list()

        assert repo.writes == {}
        assert [item.title for item in listing.manipulators] == ["rule 2", "Rule 10"]
        assert all(item.asset_count == 2 for item in listing.manipulators)
        assert {"hostname", "role", "cpu", "tier", "other"} <= set(listing.field_options)

    @pytest.mark.asyncio
    async def test_run_all(self, repo, server_pool):
        engine = ManipulatorEngine(repo)
        await engine.create(_payload())
        await engine.create(
            _payload(
                title="Big boxes",
                fieldName="size",
                fieldValue="large",
                definition={"type": "rule", "field": "cpu", "operator": "greater", "value": "16"},
            )
        )

        results = await engine.run_all()

        assert [(item.title, item.asset_count) for item in results] == [("Web tier", 2), ("Big boxes", 1)]
        assert await _tier_overrides(repo, "size") == {"1:A-3": "large"}

    def test_natural_key(self):
        titles = ["b", "A10", "a2", "a1"]
        assert sorted(titles, key=natural_key) == ["a1", "a2", "A10", "b"]
