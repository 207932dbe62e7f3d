"""SARIF 2.1.0 document assembly."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from . import __version__
from .rules import Finding, Rule
from .scan import Artifact

SARIF_VERSION = "2.1.0"
SCHEMA_URL = "https://json.schemastore.org/sarif-2.1.0.json"
TOOL_NAME = "classlens"


@dataclass(frozen=True)
class InvocationStats:
    scan_duration_ms: int = 0
    class_count: int = 0
    artifact_count: int = 0
    classpath_class_count: int = 0


def build_invocation(
    stats: InvocationStats, arguments: Optional[Sequence[str]] = None
) -> Dict[str, Any]:
    arguments = list(sys.argv if arguments is None else arguments)
    return {
        "executionSuccessful": True,
        "arguments": arguments,
        "commandLine": " ".join(arguments),
        "properties": {
            "classlens.scan_ms": stats.scan_duration_ms,
            "classlens.class_count": stats.class_count,
            "classlens.artifact_count": stats.artifact_count,
            "classlens.classpath_class_count": stats.classpath_class_count,
        },
    }


def result_to_sarif(finding: Finding) -> Dict[str, Any]:
    return {
        "ruleId": finding.rule_id,
        "level": finding.level,
        "message": {"text": finding.message},
        "locations": [finding.location.to_sarif()],
    }


def build_sarif(
    findings: Sequence[Finding],
    rules: Sequence[Rule],
    artifacts: Sequence[Artifact],
    invocation: Dict[str, Any],
) -> Dict[str, Any]:
    """Assemble a single-run SARIF log.

    ``results`` keep the order of ``findings``; the ``artifacts`` key is only
    present when something was scanned.
    """

    run: Dict[str, Any] = {
        "tool": {
            "driver": {
                "name": TOOL_NAME,
                "version": __version__,
                "rules": [rule.metadata().to_sarif() for rule in rules],
            }
        },
        "invocations": [invocation],
        "results": [result_to_sarif(finding) for finding in findings],
    }
    if artifacts:
        run["artifacts"] = [artifact.to_sarif() for artifact in artifacts]

    return {
        "$schema": SCHEMA_URL,
        "version": SARIF_VERSION,
        "runs": [run],
    }


def dumps(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2) + "\n"


__all__: List[str] = [
    "InvocationStats",
    "SARIF_VERSION",
    "SCHEMA_URL",
    "build_invocation",
    "build_sarif",
    "dumps",
    "result_to_sarif",
]
