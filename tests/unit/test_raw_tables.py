"""Unit tests for raw table import, re-mapping and archival."""

from __future__ import annotations

import pytest

from assetunify.errors import ConflictError, NotFoundError, ValidationError
from assetunify.models import DuplicatePolicy
from assetunify.pool import project_asset_pool
from assetunify.pool.raw_tables import (
    archive_raw_table,
    build_records,
    get_raw_table,
    import_raw_table,
    list_raw_tables,
    sanitize_header,
    update_raw_mapping,
)

MAPPING = [{"rawHeader": "Hostname", "assetField": "hostname"}]


class TestHeaders:
    """Header sanitising and record building."""

    def test_blank_headers_are_numbered(self):
        assert [sanitize_header(value, i) for i, value in enumerate(["Host", " ", None])] == [
            "Host",
            "Column 2",
            "Column 3",
        ]

    def test_short_rows_are_padded(self):
        assert build_records(["a", "b"], [["1"], ["2", None, "extra"]]) == [
            {"a": "1", "b": ""},
            {"a": "2", "b": ""},
        ]

    @pytest.mark.asyncio
    async def test_duplicate_headers_conflict(self, repo):
        with pytest.raises(ConflictError) as exc_info:
            await import_raw_table(repo, "T", ["Hostname", "HOSTNAME"], [], MAPPING)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_no_headers(self, repo):
        with pytest.raises(ValidationError):
            await import_raw_table(repo, "T", [], [], MAPPING)


class TestImport:
    """Importing raw tables."""

    @pytest.mark.asyncio
    async def test_rows_keyed_by_id_column(self, repo, server_pool):
        detail = await get_raw_table(repo, server_pool)
        assert [row.row_key for row in detail.rows] == ["A-1", "A-2", "A-3", "A-4"]
        assert detail.rows[0].data["Hostname"] == "web-01"
        assert [pair.asset_field for pair in detail.mapping] == ["hostname", "role", "cpu"]

    @pytest.mark.asyncio
    async def test_rows_keyed_by_index_without_id_column(self, repo):
        table = await import_raw_table(repo, "T", ["Hostname"], [["a"], ["b"]], MAPPING)
        detail = await get_raw_table(repo, table.id)
        assert [row.row_key for row in detail.rows] == [0, 1]

    @pytest.mark.asyncio
    async def test_duplicate_keys_rejected_by_default(self, repo):
        rows = [["1", "a"], ["1", "b"], ["2", "c"]]
        with pytest.raises(ConflictError, match="Duplicate IDs found: 1"):
            await import_raw_table(repo, "T", ["ID", "Hostname"], rows, MAPPING, id_column="ID")
        assert (await repo.get("raw_tables")).rows == []

    @pytest.mark.asyncio
    async def test_duplicate_keys_keep_first(self, repo):
        rows = [["1", "a"], ["1", "b"], ["2", "c"]]
        table = await import_raw_table(
            repo, "T", ["ID", "Hostname"], rows, MAPPING, id_column="ID", duplicate_policy="first"
        )
        assert table.duplicate_policy is DuplicatePolicy.FIRST
        detail = await get_raw_table(repo, table.id)
        assert [(row.row_key, row.data["Hostname"]) for row in detail.rows] == [("1", "a"), ("2", "c")]

    @pytest.mark.asyncio
    async def test_blank_id_cells_rejected(self, repo):
        """A blank id must not fall back to an index that another row uses as its id."""
        rows = [["3", "a"], ["x", "b"], ["y", "c"], ["", "d"], [None, "e"]]
        with pytest.raises(ValidationError, match='ID column "Tag": 4, 5'):
            await import_raw_table(repo, "T", ["Tag", "Hostname"], rows, MAPPING, id_column="Tag")
        assert (await repo.get("raw_tables")).rows == []
        assert (await repo.get("raw_rows")).rows == []

    @pytest.mark.asyncio
    async def test_pool_ids_unique_across_tables(self, repo):
        await import_raw_table(
            repo, "Tagged", ["Tag", "Hostname"], [["0", "a"], ["1", "b"]], MAPPING, id_column="Tag"
        )
        await import_raw_table(repo, "Plain", ["Hostname"], [["c"], ["d"]], MAPPING)

        view = await project_asset_pool(repo)

        ids = [row.id for row in view.rows]
        assert ids == ["1:0", "1:1", "2:0", "2:1"]
        assert len(ids) == len(set(ids))

    @pytest.mark.asyncio
    async def test_unknown_id_column(self, repo):
        with pytest.raises(ValidationError):
            await import_raw_table(repo, "T", ["Hostname"], [], MAPPING, id_column="Serial")

    @pytest.mark.asyncio
    async def test_mapping_required(self, repo):
        with pytest.raises(ValidationError, match="map at least one"):
            await import_raw_table(repo, "T", ["Hostname"], [], [{"rawHeader": " ", "assetField": "x"}])

    @pytest.mark.asyncio
    async def test_mapping_must_reference_headers(self, repo):
        with pytest.raises(ValidationError, match="unknown headers"):
            await import_raw_table(repo, "T", ["Hostname"], [], [{"rawHeader": "Serial", "assetField": "x"}])

    @pytest.mark.asyncio
    async def test_title_required(self, repo):
        with pytest.raises(ValidationError):
            await import_raw_table(repo, " ", ["Hostname"], [], MAPPING)


class TestManagement:
    """Re-mapping, listing and archival."""

    @pytest.mark.asyncio
    async def test_update_mapping(self, repo, server_pool):
        pairs = await update_raw_mapping(
            repo, server_pool, [{"raw_header": "Asset Tag", "asset_field": "tag"}]
        )
        assert [(pair.raw_header, pair.asset_field) for pair in pairs] == [("Asset Tag", "tag")]
        assert len((await repo.get("raw_mappings")).rows) == 1

    @pytest.mark.asyncio
    async def test_update_mapping_rejects_unknown_header(self, repo, server_pool):
        with pytest.raises(ValidationError):
            await update_raw_mapping(repo, server_pool, [{"rawHeader": "Nope", "assetField": "x"}])

    @pytest.mark.asyncio
    async def test_update_mapping_unknown_table(self, repo):
        with pytest.raises(NotFoundError):
            await update_raw_mapping(repo, 42, MAPPING)

    @pytest.mark.asyncio
    async def test_list_and_archive(self, repo, server_pool):
        [summary] = await list_raw_tables(repo)
        assert summary.row_count == 4
        assert not summary.archived

        table = await archive_raw_table(repo, server_pool)
        assert table.archived
        assert table.archived_at is not None
        assert await list_raw_tables(repo, include_archived=False) == []
