"""Single-pass instruction decoder.

:func:`decode_code` walks a method's code array from offset 0, emitting one
:class:`~classlens.ir.Instruction` per instruction boundary.  Call sites and
string literals are collected in the same walk so they always describe exactly
the instructions the CFG builder sees, regardless of reachability.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .constant_pool import ConstantPool
from .errors import ConstantPoolError, TruncatedCodeError
from .ir import CallKind, CallSite, ConstString, Instruction, InstructionKind, Invoke, Other
from .opcodes import (
    INVOKEINTERFACE,
    INVOKESPECIAL,
    INVOKESTATIC,
    INVOKEVIRTUAL,
    LDC,
    LDC_W,
    MAX_CODE_LENGTH,
    opcode_length,
    read_u16,
    read_u8,
)

CALL_KINDS: Dict[int, CallKind] = {
    INVOKEVIRTUAL: CallKind.VIRTUAL,
    INVOKEINTERFACE: CallKind.INTERFACE,
    INVOKESPECIAL: CallKind.SPECIAL,
    INVOKESTATIC: CallKind.STATIC,
}


@dataclass(frozen=True)
class DecodedCode:
    """Result of decoding one code array."""

    instructions: Tuple[Instruction, ...]
    calls: Tuple[CallSite, ...]
    string_literals: Tuple[str, ...]


def decode_code(code: bytes, pool: Optional[ConstantPool] = None) -> DecodedCode:
    """Decode ``code`` into instructions, call sites and string literals.

    Raises a :class:`~classlens.errors.DecodeError` subclass on the first
    truncated operand, malformed switch, unassigned opcode or bad constant
    pool reference.  No partial result is returned.
    """

    if len(code) > MAX_CODE_LENGTH:
        raise TruncatedCodeError(
            f"code length {len(code)} exceeds the {MAX_CODE_LENGTH} byte limit"
        )

    instructions: List[Instruction] = []
    calls: List[CallSite] = []
    literals: List[str] = []

    offset = 0
    while offset < len(code):
        opcode = code[offset]
        length = opcode_length(code, offset)
        kind = _classify(code, offset, opcode, pool)
        if isinstance(kind, Invoke):
            calls.append(kind.call)
        elif isinstance(kind, ConstString):
            literals.append(kind.value)
        instructions.append(Instruction(offset, opcode, length, kind))
        offset += length

    return DecodedCode(tuple(instructions), tuple(calls), tuple(literals))


def _classify(
    code: bytes, offset: int, opcode: int, pool: Optional[ConstantPool]
) -> InstructionKind:
    call_kind = CALL_KINDS.get(opcode)
    if call_kind is not None:
        index = read_u16(code, offset + 1)
        owner, name, descriptor = _lookup(pool, offset, lambda cp: cp.method_ref(index))
        return Invoke(CallSite(owner, name, descriptor, call_kind, offset))

    if opcode in (LDC, LDC_W):
        index = read_u8(code, offset + 1) if opcode == LDC else read_u16(code, offset + 1)
        value = _lookup(pool, offset, lambda cp: cp.loadable_string(index))
        if value is not None:
            return ConstString(value)

    return Other(opcode)


def _lookup(pool: Optional[ConstantPool], offset: int, resolve):
    if pool is None:
        raise ConstantPoolError(
            "instruction references the constant pool but none was supplied",
            offset=offset,
        )
    try:
        return resolve(pool)
    except ConstantPoolError as exc:
        raise ConstantPoolError(str(exc), offset=offset) from exc
