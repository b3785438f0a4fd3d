"""Asset pool projection, field settings and raw tables."""

from assetunify.pool.projector import AssetPoolProjector, project_asset_pool, project_pool

__all__ = ["AssetPoolProjector", "project_asset_pool", "project_pool"]
