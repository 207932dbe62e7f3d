"""Branch and switch target resolution."""

from __future__ import annotations

from typing import List, Optional

from .opcodes import (
    LOOKUPSWITCH,
    OFFSET_MASK,
    SHORT_BRANCHES,
    TABLESWITCH,
    WIDE_BRANCHES,
    lookupswitch_pair_count,
    padding,
    read_i16,
    read_i32,
    read_u8,
    tableswitch_case_count,
)


def _absolute(offset: int, relative: int) -> int:
    # Operands are signed and may point backwards; compute in an unbounded int
    # and only then reinterpret as an unsigned code offset.
    return (offset + relative) & OFFSET_MASK


def branch_targets(code: bytes, offset: int) -> Optional[List[int]]:
    """Return the absolute targets of the branch instruction at ``offset``.

    ``None`` means the opcode has no explicit targets.  For switches the
    default target always comes first, followed by the cases in encoding
    order (``lookupswitch`` pairs are not re-sorted by match value).
    """

    opcode = read_u8(code, offset)
    if opcode in SHORT_BRANCHES:
        return [_absolute(offset, read_i16(code, offset + 1))]
    if opcode in WIDE_BRANCHES:
        return [_absolute(offset, read_i32(code, offset + 1))]
    if opcode == TABLESWITCH:
        return tableswitch_targets(code, offset)
    if opcode == LOOKUPSWITCH:
        return lookupswitch_targets(code, offset)
    return None


def tableswitch_targets(code: bytes, offset: int) -> List[int]:
    base = offset + 1 + padding(offset)
    default = read_i32(code, base)
    low = read_i32(code, base + 4)
    high = read_i32(code, base + 8)
    count = tableswitch_case_count(low, high, offset)

    targets = [_absolute(offset, default)]
    position = base + 12
    for _ in range(count):
        targets.append(_absolute(offset, read_i32(code, position)))
        position += 4
    return targets


def lookupswitch_targets(code: bytes, offset: int) -> List[int]:
    base = offset + 1 + padding(offset)
    default = read_i32(code, base)
    npairs = lookupswitch_pair_count(read_i32(code, base + 4), offset)

    targets = [_absolute(offset, default)]
    position = base + 8
    for _ in range(npairs):
        # Each pair is (match, offset); only the offset is a target.
        targets.append(_absolute(offset, read_i32(code, position + 4)))
        position += 8
    return targets
