"""Manipulators: rule-driven field assignments on the asset pool."""

from assetunify.manipulators.engine import ManipulatorEngine, natural_key, validate_payload

__all__ = ["ManipulatorEngine", "natural_key", "validate_payload"]
