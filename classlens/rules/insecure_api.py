"""Calls into process execution and reflection APIs."""

from __future__ import annotations

from typing import FrozenSet, List, Tuple

from .base import Finding, Rule, RuleMetadata, iter_methods, location_of

INSECURE_CALLS: FrozenSet[Tuple[str, str]] = frozenset(
    {
        ("java/lang/Runtime", "exec"),
        ("java/lang/ProcessBuilder", "<init>"),
        ("java/lang/ProcessBuilder", "start"),
        ("java/lang/reflect/Method", "invoke"),
        ("java/lang/reflect/Constructor", "newInstance"),
        ("java/lang/Class", "forName"),
    }
)


def is_insecure_call(owner: str, name: str) -> bool:
    return (owner, name) in INSECURE_CALLS


class InsecureApiRule(Rule):
    def metadata(self) -> RuleMetadata:
        return RuleMetadata(
            id="INSECURE_API",
            name="Insecure API usage",
            description="Calls to insecure process or reflection APIs",
        )

    def run(self, context) -> List[Finding]:
        findings: List[Finding] = []
        for cls, method in iter_methods(context.classes):
            for call in method.calls:
                if is_insecure_call(call.owner, call.name):
                    findings.append(
                        self.finding(
                            f"Insecure API usage: {call.owner}.{call.name}",
                            location_of(cls, method),
                        )
                    )
        return findings
