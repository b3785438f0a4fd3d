"""Boolean rule tree evaluation against asset rows.

Evaluation is total: invalid patterns and non-numeric comparisons resolve to
``False`` and unknown node shapes resolve to ``True``; nothing is raised.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from functools import lru_cache
from typing import Any, TypeVar

from assetunify.errors import IntegrityWarning
from assetunify.rules.nodes import GroupMode, Operator, Rule, RuleGroup
from assetunify.rules.values import stringify_value, to_number

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")


def get_field_value(row: Any, field: str) -> Any:
    """Read a field from a projected row (``values``) or a flat mapping."""
    if isinstance(row, Mapping):
        if field in row:
            return row[field]
        values = row.get("values")
        if isinstance(values, Mapping):
            return values.get(field)
        return None
    values = getattr(row, "values", None)
    if isinstance(values, Mapping):
        return values.get(field)
    return None


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _regex_match(pattern: str, text: str) -> bool:
    if not pattern:
        return False
    try:
        return _compile(pattern).search(text) is not None
    except re.error as exc:
        logger.warning(
            "Invalid regular expression in rule: %r (%s)",
            pattern,
            exc,
            extra={"category": IntegrityWarning.__name__},
        )
        return False


def evaluate_rule(rule: Rule, row: Any) -> bool:
    """Evaluate one comparison against a row."""
    row_value = stringify_value(get_field_value(row, rule.field))
    target = rule.value or ""

    if rule.operator is Operator.EQUALS:
        return row_value.strip().lower() == target.strip().lower()
    if rule.operator is Operator.NOT_EQUALS:
        return row_value.strip().lower() != target.strip().lower()
    if rule.operator is Operator.REGEX:
        return _regex_match(target, row_value)

    row_number = to_number(row_value)
    target_number = to_number(target)
    if row_number is None or target_number is None:
        return False
    if rule.operator is Operator.GREATER:
        return row_number > target_number
    if rule.operator is Operator.LESS:
        return row_number < target_number
    return False


def evaluate(node: Any, row: Any) -> bool:
    """Evaluate a canonical rule tree against one row.

    Args:
        node: ``Rule`` or ``RuleGroup`` (see ``normalize_definition``)
        row: Pool row model or mapping

    Returns:
        True when the row matches. Empty groups and unknown shapes match.
    """
    if isinstance(node, Rule):
        return evaluate_rule(node, row)
    if isinstance(node, RuleGroup):
        if not node.children:
            return True
        if node.mode is GroupMode.ANY:
            return any(evaluate(child, row) for child in node.children)
        return all(evaluate(child, row) for child in node.children)
    return True


def filter_rows(node: Any, rows: Iterable[RowT]) -> list[RowT]:
    """Return the rows matching ``node``, preserving input order."""
    return [row for row in rows if evaluate(node, row)]
