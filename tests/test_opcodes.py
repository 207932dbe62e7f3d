from __future__ import annotations

import pytest

from classlens.errors import InvalidOpcodeError, InvalidSwitchError, TruncatedCodeError
from classlens.opcodes import (
    FIXED_LENGTHS,
    GOTO_W,
    IINC,
    LOOKUPSWITCH,
    MNEMONICS,
    TABLESWITCH,
    WIDE,
    mnemonic,
    opcode_length,
    padding,
)


def _i4(value: int) -> bytes:
    return value.to_bytes(4, "big", signed=True)


@pytest.mark.parametrize(
    "offset, expected",
    [(0, 3), (1, 2), (2, 1), (3, 0), (4, 3), (7, 0)],
)
def test_switch_padding_aligns_to_four_bytes(offset: int, expected: int) -> None:
    assert padding(offset) == expected
    assert (offset + 1 + padding(offset)) % 4 == 0


@pytest.mark.parametrize(
    "code, expected",
    [
        (b"\x00", 1),  # nop
        (b"\x10\x05", 2),  # bipush
        (b"\x11\x00\x05", 3),  # sipush
        (b"\x12\x01", 2),  # ldc
        (b"\x13\x00\x01", 3),  # ldc_w
        (b"\x19\x01", 2),  # aload
        (b"\x84\x01\x01", 3),  # iinc
        (b"\xa7\x00\x03", 3),  # goto
        (b"\xa9\x01", 2),  # ret
        (b"\xb6\x00\x01", 3),  # invokevirtual
        (b"\xb9\x00\x01\x01\x00", 5),  # invokeinterface
        (b"\xba\x00\x01\x00\x00", 5),  # invokedynamic
        (b"\xc5\x00\x01\x02", 4),  # multianewarray
        (b"\xc8\x00\x00\x00\x05", 5),  # goto_w
    ],
)
def test_fixed_length_opcodes(code: bytes, expected: int) -> None:
    assert opcode_length(code, 0) == expected


def test_wide_length_depends_on_modified_opcode() -> None:
    assert opcode_length(bytes([WIDE, 0x15, 0x01, 0x00]), 0) == 4
    assert opcode_length(bytes([WIDE, IINC, 0x01, 0x00, 0x00, 0x05]), 0) == 6


def test_tableswitch_length_includes_padding_and_cases() -> None:
    # One nop shifts the switch to offset 1, so two padding bytes follow it.
    code = (
        b"\x00"
        + bytes([TABLESWITCH])
        + b"\x00\x00"
        + _i4(20)
        + _i4(1)
        + _i4(3)
        + _i4(10)
        + _i4(11)
        + _i4(12)
    )
    assert opcode_length(code, 1) == 1 + 2 + 12 + 3 * 4


def test_lookupswitch_length_counts_pairs() -> None:
    code = bytes([LOOKUPSWITCH]) + b"\x00\x00\x00" + _i4(8) + _i4(2) + _i4(1) + _i4(4) + _i4(9) + _i4(5)
    assert opcode_length(code, 0) == 1 + 3 + 8 + 2 * 8


def test_tableswitch_with_inverted_bounds_is_rejected() -> None:
    code = bytes([TABLESWITCH]) + b"\x00\x00\x00" + _i4(0) + _i4(5) + _i4(1)
    with pytest.raises(InvalidSwitchError, match="below low"):
        opcode_length(code, 0)


def test_tableswitch_with_overflowing_range_is_rejected() -> None:
    code = bytes([TABLESWITCH]) + b"\x00\x00\x00" + _i4(0) + _i4(-(2**31)) + _i4(2**31 - 1)
    with pytest.raises(InvalidSwitchError, match="overflows"):
        opcode_length(code, 0)


def test_lookupswitch_with_negative_pair_count_is_rejected() -> None:
    code = bytes([LOOKUPSWITCH]) + b"\x00\x00\x00" + _i4(0) + _i4(-1)
    with pytest.raises(InvalidSwitchError, match="negative pair count"):
        opcode_length(code, 0)


@pytest.mark.parametrize(
    "code",
    [
        b"\x11\x00",  # sipush missing a byte
        b"\xa7\x00",  # goto missing a byte
        bytes([GOTO_W, 0, 0, 0]),
        bytes([WIDE]),
        bytes([TABLESWITCH]) + b"\x00\x00\x00" + _i4(0) + _i4(0) + _i4(2) + _i4(1),
    ],
)
def test_truncated_instructions_raise(code: bytes) -> None:
    with pytest.raises(TruncatedCodeError):
        opcode_length(code, 0)


@pytest.mark.parametrize("opcode", [0xCB, 0xE0, 0xFD])
def test_unassigned_opcodes_raise(opcode: int) -> None:
    with pytest.raises(InvalidOpcodeError, match=f"0x{opcode:02x}"):
        opcode_length(bytes([opcode, 0, 0, 0]), 0)


def test_error_messages_name_the_offset() -> None:
    with pytest.raises(TruncatedCodeError, match="at offset 1"):
        opcode_length(b"\x00\xa7", 1)


def test_mnemonic_table_covers_every_assigned_opcode() -> None:
    assert MNEMONICS[0x00] == "nop"
    assert MNEMONICS[0xAA] == "tableswitch"
    assert MNEMONICS[0xCA] == "breakpoint"
    assert mnemonic(0xE0) == "op_e0"
    assert set(range(0x00, 0xCB)) <= set(MNEMONICS)
    assert not set(range(0xCB, 0xFE)) & set(FIXED_LENGTHS)
