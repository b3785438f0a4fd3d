"""Canonicalization of persisted or user-supplied rule trees.

Legacy and malformed definitions are folded into valid nodes instead of being
rejected: unknown operators become ``equals``, unknown modes become ``all``,
and rules without a field are dropped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from assetunify.rules.nodes import (
    GroupMode,
    Operator,
    Rule,
    RuleGroup,
    RuleNode,
    empty_group,
)
from assetunify.rules.values import scalar_text

logger = logging.getLogger(__name__)

_OPERATORS = {operator.value: operator for operator in Operator}
_MODES = {mode.value: mode for mode in GroupMode}


def normalize_operator(value: Any) -> Operator:
    raw = value.strip().lower() if isinstance(value, str) else ""
    return _OPERATORS.get(raw, Operator.EQUALS)


def normalize_mode(value: Any) -> GroupMode:
    raw = value.strip().lower() if isinstance(value, str) else ""
    return _MODES.get(raw, GroupMode.ALL)


def normalize_rule(node: Any) -> Rule | None:
    """Canonicalize a rule node, or None when it has no usable field."""
    if not isinstance(node, Mapping):
        return None

    field = scalar_text(node.get("field")).strip()
    if not field:
        return None

    value = node.get("value")
    return Rule(
        field=field,
        operator=normalize_operator(node.get("operator")),
        value=value if isinstance(value, str) else scalar_text(value),
    )


def normalize_group(node: Any) -> RuleGroup:
    """Canonicalize a group node and, recursively, its children."""
    if not isinstance(node, Mapping):
        return empty_group()

    raw_children = node.get("children")
    children: list[RuleNode] = []
    for child in raw_children if isinstance(raw_children, list) else []:
        if not isinstance(child, Mapping):
            continue
        if child.get("type") == "group" or child.get("children"):
            children.append(normalize_group(child))
        else:
            rule = normalize_rule(child)
            if rule is not None:
                children.append(rule)

    mode = node.get("mode")
    if mode is None:
        # Older definitions stored the combinator under "matches"
        mode = node.get("matches")

    return RuleGroup(mode=normalize_mode(mode), children=children)


def normalize_definition(definition: Any) -> RuleNode:
    """Canonicalize a whole rule tree.

    Accepts node models, plain mappings or a JSON string. Anything that is not
    a mapping becomes an empty ``all`` group. A root-level rule stays a rule.
    """
    if isinstance(definition, BaseModel):
        definition = definition.model_dump(mode="json")
    elif isinstance(definition, (str, bytes)):
        try:
            definition = json.loads(definition)
        except ValueError:
            logger.warning("Rule definition is not valid JSON, using empty group")
            return empty_group()

    if isinstance(definition, Mapping) and definition.get("type") == "rule":
        rule = normalize_rule(definition)
        return rule if rule is not None else empty_group()
    return normalize_group(definition)


def serialize_definition(definition: Any) -> dict[str, Any]:
    """Normalize and dump a definition to its wire form for storage."""
    return normalize_definition(definition).model_dump(mode="json")
