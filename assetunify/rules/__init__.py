"""Rule tree models, normalization and evaluation."""

from assetunify.rules.evaluator import evaluate, evaluate_rule, filter_rows, get_field_value
from assetunify.rules.nodes import GroupMode, Operator, Rule, RuleGroup, RuleNode
from assetunify.rules.normalize import normalize_definition, serialize_definition

__all__ = [
    "GroupMode",
    "Operator",
    "Rule",
    "RuleGroup",
    "RuleNode",
    "evaluate",
    "evaluate_rule",
    "filter_rows",
    "get_field_value",
    "normalize_definition",
    "serialize_definition",
]
