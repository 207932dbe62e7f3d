"""Classes overriding ``equals`` without a matching ``hashCode``."""

from __future__ import annotations

from typing import List

from .base import Finding, Rule, RuleMetadata, class_location

EQUALS = ("equals", "(Ljava/lang/Object;)Z")
HASH_CODE = ("hashCode", "()I")


class IneffectiveEqualsRule(Rule):
    def metadata(self) -> RuleMetadata:
        return RuleMetadata(
            id="INEFFECTIVE_EQUALS",
            name="equals without hashCode",
            description="Classes that override equals(Object) but not hashCode()",
        )

    def run(self, context) -> List[Finding]:
        findings: List[Finding] = []
        for cls in context.classes:
            if cls.find_method(*EQUALS) is None:
                continue
            if cls.find_method(*HASH_CODE) is not None:
                continue
            findings.append(
                self.finding(
                    f"{cls.name} overrides equals(Object) but not hashCode()",
                    class_location(cls.name),
                )
            )
        return findings
