"""Rule interface and the finding records rules produce."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterator, List, Tuple

from ..ir import Class, Instruction, Method

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from ..engine import AnalysisContext


@dataclass(frozen=True)
class RuleMetadata:
    id: str
    name: str
    description: str

    def to_sarif(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "shortDescription": {"text": self.description},
        }


@dataclass(frozen=True)
class LogicalLocation:
    """Where a finding lives: a method (``function``) or a class (``type``)."""

    name: str
    kind: str

    def to_sarif(self) -> Dict[str, object]:
        return {"logicalLocations": [{"name": self.name, "kind": self.kind}]}


@dataclass(frozen=True)
class Finding:
    rule_id: str
    message: str
    location: LogicalLocation
    level: str = "warning"


class Rule:
    """Base class for analysis rules.

    Subclasses describe themselves through :meth:`metadata` and report issues
    from :meth:`run`.  Rules only read the context; they never mutate classes
    or share state between runs.
    """

    def metadata(self) -> RuleMetadata:
        raise NotImplementedError

    def run(self, context: "AnalysisContext") -> List[Finding]:
        raise NotImplementedError

    @property
    def rule_id(self) -> str:
        return self.metadata().id

    def finding(self, message: str, location: LogicalLocation) -> Finding:
        return Finding(self.rule_id, message, location)


def method_location(class_name: str, method_name: str, descriptor: str) -> LogicalLocation:
    return LogicalLocation(f"{class_name}.{method_name}{descriptor}", "function")


def class_location(class_name: str) -> LogicalLocation:
    return LogicalLocation(class_name, "type")


def location_of(cls: Class, method: Method) -> LogicalLocation:
    return method_location(cls.name, method.name, method.descriptor)


def iter_methods(classes: Tuple[Class, ...]) -> Iterator[Tuple[Class, Method]]:
    for cls in classes:
        for method in cls.methods:
            yield cls, method


def method_instructions(method: Method) -> List[Instruction]:
    """Return every instruction of ``method`` in offset order."""

    return [
        instruction
        for block in method.cfg.blocks
        for instruction in block.instructions
    ]
