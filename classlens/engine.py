"""Analysis context construction and rule execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .classpath import ClasspathIndex
from .config import AnalysisConfig
from .ir import Class
from .rules import Finding, Rule
from .scan import Artifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisContext:
    """Read-only view handed to every rule.

    ``classes`` holds the analysis targets only; classes that were merely
    found on the classpath are reachable through ``classpath``.
    """

    classes: Tuple[Class, ...]
    classpath: ClasspathIndex
    artifacts: Tuple[Artifact, ...] = ()


def build_context(
    classes: Sequence[Class],
    classpath: ClasspathIndex,
    artifacts: Sequence[Artifact] = (),
) -> AnalysisContext:
    return AnalysisContext(tuple(classes), classpath, tuple(artifacts))


def enabled_rules(
    rules: Sequence[Rule], config: Optional[AnalysisConfig] = None
) -> List[Rule]:
    config = config or AnalysisConfig()
    return [rule for rule in rules if config.is_enabled(rule.metadata().id)]


def run_rules(
    context: AnalysisContext,
    rules: Sequence[Rule],
    config: Optional[AnalysisConfig] = None,
) -> List[Finding]:
    """Run enabled ``rules`` in order and concatenate their findings."""

    findings: List[Finding] = []
    for rule in enabled_rules(rules, config):
        produced = rule.run(context)
        logger.debug("rule %s produced %d findings", rule.metadata().id, len(produced))
        findings.extend(produced)
    return findings
