"""Asset groups and the selectors that classify pool rows into them."""

from assetunify.selectors.engine import GroupSelectorEngine, calculate_coverage
from assetunify.selectors.groups import create_group, list_groups, require_group

__all__ = [
    "GroupSelectorEngine",
    "calculate_coverage",
    "create_group",
    "list_groups",
    "require_group",
]
