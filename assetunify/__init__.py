"""AssetUnify - asset inventory unification and rule evaluation."""

__version__ = "0.1.0"
