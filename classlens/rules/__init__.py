"""Analysis rules run over the decoded analysis targets."""

from __future__ import annotations

from typing import Tuple

from .base import (
    Finding,
    LogicalLocation,
    Rule,
    RuleMetadata,
    class_location,
    method_location,
)
from .dead_code import DeadCodeRule
from .empty_catch import EmptyCatchRule
from .ineffective_equals import IneffectiveEqualsRule
from .insecure_api import InsecureApiRule
from .nullness import NullnessRule


def all_rules() -> Tuple[Rule, ...]:
    """Return the rule registry in reporting order."""

    return (
        DeadCodeRule(),
        EmptyCatchRule(),
        IneffectiveEqualsRule(),
        InsecureApiRule(),
        NullnessRule(),
    )


__all__ = [
    "DeadCodeRule",
    "EmptyCatchRule",
    "Finding",
    "IneffectiveEqualsRule",
    "InsecureApiRule",
    "LogicalLocation",
    "NullnessRule",
    "Rule",
    "RuleMetadata",
    "all_rules",
    "class_location",
    "method_location",
]
