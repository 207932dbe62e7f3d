"""JVM opcode table and bounds-checked operand readers.

The table answers a single question for the decoder: how many bytes does the
instruction starting at ``offset`` occupy?  Most opcodes have a fixed length.
``wide`` depends on the opcode it modifies and the two switch opcodes depend on
their own offset because the switch header is aligned to a 4-byte boundary
relative to the start of the method.
"""

from __future__ import annotations

from typing import Dict, Tuple

from .errors import InvalidOpcodeError, InvalidSwitchError, TruncatedCodeError

# ---------------------------------------------------------------------------
# Named opcodes
# ---------------------------------------------------------------------------

ACONST_NULL = 0x01
LDC = 0x12
LDC_W = 0x13
ASTORE = 0x3A
ASTORE_0 = 0x4B
ASTORE_3 = 0x4E
POP = 0x57
IINC = 0x84
IFEQ = 0x99
GOTO = 0xA7
JSR = 0xA8
TABLESWITCH = 0xAA
LOOKUPSWITCH = 0xAB
IRETURN = 0xAC
LRETURN = 0xAD
FRETURN = 0xAE
DRETURN = 0xAF
ARETURN = 0xB0
RETURN = 0xB1
GETFIELD = 0xB4
INVOKEVIRTUAL = 0xB6
INVOKESPECIAL = 0xB7
INVOKESTATIC = 0xB8
INVOKEINTERFACE = 0xB9
ARRAYLENGTH = 0xBE
ATHROW = 0xBF
MONITORENTER = 0xC2
WIDE = 0xC4
IFNULL = 0xC6
IFNONNULL = 0xC7
GOTO_W = 0xC8
JSR_W = 0xC9

RETURNS = frozenset({IRETURN, LRETURN, FRETURN, DRETURN, ARETURN, RETURN})
EXIT_OPCODES = RETURNS | {ATHROW}
UNCONDITIONAL_BRANCHES = frozenset({GOTO, JSR, GOTO_W, JSR_W})
SHORT_BRANCHES = frozenset(range(IFEQ, JSR + 1)) | {IFNULL, IFNONNULL}
WIDE_BRANCHES = frozenset({GOTO_W, JSR_W})
SWITCHES = frozenset({TABLESWITCH, LOOKUPSWITCH})

MAX_CODE_LENGTH = 0xFFFF
OFFSET_MASK = 0xFFFF

# ---------------------------------------------------------------------------
# Mnemonics
# ---------------------------------------------------------------------------

_MNEMONIC_TABLE = (
    "nop aconst_null iconst_m1 iconst_0 iconst_1 iconst_2 iconst_3 iconst_4 "
    "iconst_5 lconst_0 lconst_1 fconst_0 fconst_1 fconst_2 dconst_0 dconst_1 "
    "bipush sipush ldc ldc_w ldc2_w iload lload fload dload aload iload_0 "
    "iload_1 iload_2 iload_3 lload_0 lload_1 lload_2 lload_3 fload_0 fload_1 "
    "fload_2 fload_3 dload_0 dload_1 dload_2 dload_3 aload_0 aload_1 aload_2 "
    "aload_3 iaload laload faload daload aaload baload caload saload istore "
    "lstore fstore dstore astore istore_0 istore_1 istore_2 istore_3 lstore_0 "
    "lstore_1 lstore_2 lstore_3 fstore_0 fstore_1 fstore_2 fstore_3 dstore_0 "
    "dstore_1 dstore_2 dstore_3 astore_0 astore_1 astore_2 astore_3 iastore "
    "lastore fastore dastore aastore bastore castore sastore pop pop2 dup "
    "dup_x1 dup_x2 dup2 dup2_x1 dup2_x2 swap iadd ladd fadd dadd isub lsub "
    "fsub dsub imul lmul fmul dmul idiv ldiv fdiv ddiv irem lrem frem drem "
    "ineg lneg fneg dneg ishl lshl ishr lshr iushr lushr iand land ior lor "
    "ixor lxor iinc i2l i2f i2d l2i l2f l2d f2i f2l f2d d2i d2l d2f i2b i2c "
    "i2s lcmp fcmpl fcmpg dcmpl dcmpg ifeq ifne iflt ifge ifgt ifle if_icmpeq "
    "if_icmpne if_icmplt if_icmpge if_icmpgt if_icmple if_acmpeq if_acmpne "
    "goto jsr ret tableswitch lookupswitch ireturn lreturn freturn dreturn "
    "areturn return getstatic putstatic getfield putfield invokevirtual "
    "invokespecial invokestatic invokeinterface invokedynamic new newarray "
    "anewarray arraylength athrow checkcast instanceof monitorenter "
    "monitorexit wide multianewarray ifnull ifnonnull goto_w jsr_w breakpoint"
).split()

MNEMONICS: Dict[int, str] = dict(enumerate(_MNEMONIC_TABLE))
MNEMONICS[0xFE] = "impdep1"
MNEMONICS[0xFF] = "impdep2"


def mnemonic(opcode: int) -> str:
    return MNEMONICS.get(opcode, f"op_{opcode:02x}")


# ---------------------------------------------------------------------------
# Fixed lengths
# ---------------------------------------------------------------------------


def _fixed_lengths() -> Dict[int, int]:
    lengths: Dict[int, int] = {opcode: 1 for opcode in MNEMONICS}
    spans: Tuple[Tuple[int, int, int], ...] = (
        (0x10, 0x10, 2),  # bipush
        (0x11, 0x11, 3),  # sipush
        (0x12, 0x12, 2),  # ldc
        (0x13, 0x14, 3),  # ldc_w, ldc2_w
        (0x15, 0x19, 2),  # indexed loads
        (0x36, 0x3A, 2),  # indexed stores
        (0x84, 0x84, 3),  # iinc
        (0x99, 0xA8, 3),  # if*, goto, jsr
        (0xA9, 0xA9, 2),  # ret
        (0xB2, 0xB8, 3),  # field access, invokevirtual/special/static
        (0xB9, 0xBA, 5),  # invokeinterface, invokedynamic
        (0xBB, 0xBB, 3),  # new
        (0xBC, 0xBC, 2),  # newarray
        (0xBD, 0xBD, 3),  # anewarray
        (0xC0, 0xC1, 3),  # checkcast, instanceof
        (0xC5, 0xC5, 4),  # multianewarray
        (0xC6, 0xC7, 3),  # ifnull, ifnonnull
        (0xC8, 0xC9, 5),  # goto_w, jsr_w
    )
    for first, last, length in spans:
        for opcode in range(first, last + 1):
            lengths[opcode] = length
    # Resolved in opcode_length().
    for opcode in (TABLESWITCH, LOOKUPSWITCH, WIDE):
        del lengths[opcode]
    return lengths


FIXED_LENGTHS: Dict[int, int] = _fixed_lengths()


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


def _require(code: bytes, offset: int, size: int) -> None:
    if offset < 0 or offset + size > len(code):
        raise TruncatedCodeError(
            f"reading {size} byte(s) overruns code of length {len(code)}",
            offset=offset,
        )


def read_u8(code: bytes, offset: int) -> int:
    _require(code, offset, 1)
    return code[offset]


def read_u16(code: bytes, offset: int) -> int:
    _require(code, offset, 2)
    return int.from_bytes(code[offset : offset + 2], "big")


def read_i16(code: bytes, offset: int) -> int:
    _require(code, offset, 2)
    return int.from_bytes(code[offset : offset + 2], "big", signed=True)


def read_i32(code: bytes, offset: int) -> int:
    _require(code, offset, 4)
    return int.from_bytes(code[offset : offset + 4], "big", signed=True)


def padding(offset: int) -> int:
    """Return the switch alignment padding following the opcode at ``offset``."""

    return (4 - ((offset + 1) % 4)) % 4


def tableswitch_case_count(low: int, high: int, offset: int) -> int:
    """Return the number of jump offsets of a ``tableswitch`` with ``[low, high]``."""

    if high < low:
        raise InvalidSwitchError(
            f"tableswitch high {high} is below low {low}", offset=offset
        )
    count = high - low + 1
    if count > 0x7FFFFFFF:
        raise InvalidSwitchError(
            f"tableswitch range [{low}, {high}] overflows the case count",
            offset=offset,
        )
    return count


def lookupswitch_pair_count(npairs: int, offset: int) -> int:
    if npairs < 0:
        raise InvalidSwitchError(f"lookupswitch has negative pair count {npairs}", offset=offset)
    return npairs


def opcode_length(code: bytes, offset: int) -> int:
    """Return the encoded length of the instruction starting at ``offset``.

    The whole instruction, switch tables included, must fit inside ``code``;
    otherwise :class:`TruncatedCodeError` is raised rather than returning a
    length that would run off the end of the buffer.
    """

    opcode = read_u8(code, offset)
    if opcode == TABLESWITCH:
        base = offset + 1 + padding(offset)
        low = read_i32(code, base + 4)
        high = read_i32(code, base + 8)
        length = 1 + padding(offset) + 12 + 4 * tableswitch_case_count(low, high, offset)
    elif opcode == LOOKUPSWITCH:
        base = offset + 1 + padding(offset)
        npairs = read_i32(code, base + 4)
        length = 1 + padding(offset) + 8 + 8 * lookupswitch_pair_count(npairs, offset)
    elif opcode == WIDE:
        modified = read_u8(code, offset + 1)
        length = 6 if modified == IINC else 4
    else:
        fixed = FIXED_LENGTHS.get(opcode)
        if fixed is None:
            raise InvalidOpcodeError(f"unassigned opcode 0x{opcode:02x}", offset=offset)
        length = fixed
    _require(code, offset, length)
    return length


def is_exit(opcode: int) -> bool:
    return opcode in EXIT_OPCODES


def is_unconditional_branch(opcode: int) -> bool:
    return opcode in UNCONDITIONAL_BRANCHES


def is_branch(opcode: int) -> bool:
    """Return ``True`` for opcodes that carry explicit branch/switch targets."""

    return opcode in SHORT_BRANCHES or opcode in WIDE_BRANCHES or opcode in SWITCHES
