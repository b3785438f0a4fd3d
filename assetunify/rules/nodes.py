"""Rule tree node models.

Wire format (round-trips exactly through ``model_dump(mode="json")``):

    Rule  = {type: "rule",  field, operator, value}
    Group = {type: "group", mode, children}
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class Operator(str, Enum):
    """Comparison operators supported by rule nodes."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    REGEX = "regex"
    GREATER = "greater"
    LESS = "less"


class GroupMode(str, Enum):
    """How a group combines its children."""

    ALL = "all"
    ANY = "any"


class Rule(BaseModel):
    """Leaf comparison of one field against a stored value."""

    type: Literal["rule"] = "rule"
    field: str
    operator: Operator = Operator.EQUALS
    value: str = ""


class RuleGroup(BaseModel):
    """Boolean combination of child nodes. Empty groups match everything."""

    type: Literal["group"] = "group"
    mode: GroupMode = GroupMode.ALL
    children: list[RuleNode] = Field(default_factory=list)


RuleNode = Annotated[Union[Rule, RuleGroup], Field(discriminator="type")]

RuleGroup.model_rebuild()


def empty_group() -> RuleGroup:
    return RuleGroup(mode=GroupMode.ALL, children=[])
