"""Cross-source schema mapping and unified asset clustering."""

from assetunify.unification.clustering import Cluster, NormalizedRecord, cluster_records
from assetunify.unification.rebuild import SchemaMapper, rebuild_unified

__all__ = [
    "Cluster",
    "NormalizedRecord",
    "SchemaMapper",
    "cluster_records",
    "rebuild_unified",
]
