"""Dereferences of a ``null`` constant within a single basic block."""

from __future__ import annotations

from typing import List, Optional

from ..ir import BasicBlock, Instruction, Invoke
from ..opcodes import (
    ACONST_NULL,
    ARRAYLENGTH,
    ATHROW,
    GETFIELD,
    INVOKEINTERFACE,
    INVOKEVIRTUAL,
    MONITORENTER,
)
from .base import Finding, Rule, RuleMetadata, iter_methods, location_of

DEREFERENCES = frozenset({ATHROW, ARRAYLENGTH, GETFIELD, MONITORENTER})


def dereferences_top(instruction: Instruction) -> bool:
    """Whether ``instruction`` dereferences the value on top of the stack.

    Instance invokes only qualify without arguments, since otherwise the
    receiver is not the topmost operand.
    """

    if instruction.opcode in DEREFERENCES:
        return True
    if instruction.opcode in (INVOKEVIRTUAL, INVOKEINTERFACE) and isinstance(
        instruction.kind, Invoke
    ):
        return instruction.kind.call.descriptor.startswith("()")
    return False


def null_dereferences(block: BasicBlock) -> List[Instruction]:
    hits: List[Instruction] = []
    previous: Optional[Instruction] = None
    for instruction in block.instructions:
        if previous is not None and previous.opcode == ACONST_NULL and dereferences_top(instruction):
            hits.append(instruction)
        previous = instruction
    return hits


class NullnessRule(Rule):
    def metadata(self) -> RuleMetadata:
        return RuleMetadata(
            id="NULLNESS",
            name="Nullness checks",
            description="Dereferences of values that are always null",
        )

    def run(self, context) -> List[Finding]:
        findings: List[Finding] = []
        for cls, method in iter_methods(context.classes):
            for block in method.cfg.blocks:
                for instruction in null_dereferences(block):
                    findings.append(
                        self.finding(
                            f"Null dereference by {instruction.mnemonic} at offset {instruction.offset}",
                            location_of(cls, method),
                        )
                    )
        return findings
