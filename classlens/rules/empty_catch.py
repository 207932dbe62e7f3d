"""Catch handlers that discard the exception and leave straight away."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..ir import Instruction, Method
from ..opcodes import ASTORE, ASTORE_0, ASTORE_3, GOTO, GOTO_W, POP, RETURNS
from .base import (
    Finding,
    Rule,
    RuleMetadata,
    iter_methods,
    location_of,
    method_instructions,
)


def _discards_exception(instruction: Instruction) -> bool:
    opcode = instruction.opcode
    return opcode == ASTORE or ASTORE_0 <= opcode <= ASTORE_3 or opcode == POP


def _leaves_handler(instruction: Instruction) -> bool:
    return instruction.opcode in (GOTO, GOTO_W) or instruction.opcode in RETURNS


def empty_handler_types(method: Method) -> Dict[int, str]:
    """Map handler offsets of empty typed catch blocks to their catch type."""

    instructions = method_instructions(method)
    position = {instruction.offset: index for index, instruction in enumerate(instructions)}

    empty: Dict[int, str] = {}
    for handler in method.exception_handlers:
        if handler.catch_type is None or handler.handler_pc in empty:
            continue
        index: Optional[int] = position.get(handler.handler_pc)
        if index is None or index + 1 >= len(instructions):
            continue
        first, second = instructions[index], instructions[index + 1]
        if _discards_exception(first) and _leaves_handler(second):
            empty[handler.handler_pc] = handler.catch_type
    return empty


class EmptyCatchRule(Rule):
    def metadata(self) -> RuleMetadata:
        return RuleMetadata(
            id="EMPTY_CATCH",
            name="Empty catch block",
            description="Catch blocks that silently discard the caught exception",
        )

    def run(self, context) -> List[Finding]:
        findings: List[Finding] = []
        for cls, method in iter_methods(context.classes):
            for handler_pc, catch_type in empty_handler_types(method).items():
                findings.append(
                    self.finding(
                        f"Empty catch block for {catch_type} at offset {handler_pc}",
                        location_of(cls, method),
                    )
                )
        return findings
