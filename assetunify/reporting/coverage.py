"""Persisted group coverage report.

The report is a snapshot: generating it evaluates every selector against the
current pool and stores the result in the ``reports`` table under ``coverage``.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from assetunify.models import CoverageReport, UnmatchedAsset, utcnow
from assetunify.pool.projector import project_asset_pool
from assetunify.repository.base import Repository
from assetunify.selectors.engine import GroupSelectorEngine

logger = logging.getLogger(__name__)

REPORT_KEY = "coverage"


async def _stored_row(repo: Repository) -> dict[str, Any] | None:
    for row in (await repo.get("reports")).rows:
        if row.get("key") == REPORT_KEY:
            return row
    return None


async def generate_coverage_report(repo: Repository) -> CoverageReport:
    """Compute and persist a fresh coverage report."""
    view = await project_asset_pool(repo)
    coverage = await GroupSelectorEngine(repo).calculate_group_asset_coverage(view)

    report = CoverageReport(
        generated_at=utcnow().isoformat(),
        total_assets=coverage.total_assets,
        unmatched_count=coverage.unmatched_count,
        groups=sorted(coverage.groups, key=lambda group: group.title.lower()),
        unmatched_assets=[
            UnmatchedAsset(id=row.id, raw_table_title=row.raw_table_title, values=row.values)
            for row in coverage.unmatched_rows
        ],
        unmatched_columns=list(view.columns),
    )

    payload = report.to_wire()
    existing = await _stored_row(repo)
    if existing is None:
        await repo.insert("reports", {"key": REPORT_KEY, "payload": payload})
    else:
        await repo.update("reports", existing["id"], {"payload": payload})

    logger.info(
        "Coverage report generated: total=%d unmatched=%d groups=%d",
        report.total_assets,
        report.unmatched_count,
        len(report.groups),
    )
    return report


async def read_coverage_report(repo: Repository) -> CoverageReport:
    """Load the stored report; an empty default when none has been generated."""
    row = await _stored_row(repo)
    if row is None or not isinstance(row.get("payload"), dict):
        return CoverageReport()
    try:
        return CoverageReport.model_validate(row["payload"])
    except PydanticValidationError as exc:
        logger.warning("Stored coverage report is unreadable: %s", exc)
        return CoverageReport()
