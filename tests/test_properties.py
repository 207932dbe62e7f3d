from __future__ import annotations

from typing import List, Tuple

from hypothesis import given, settings, strategies
from hypothesis.strategies import integers, lists, sampled_from

from classlens.cfg import build_cfg
from classlens.decoder import decode_code
from classlens.ir import EdgeKind, ExceptionHandler

# Straight-line instructions with operands that need no constant pool.
STRAIGHT = [
    b"\x00",  # nop
    b"\x03",  # iconst_0
    b"\x10\x07",  # bipush 7
    b"\x15\x01",  # iload 1
    b"\x84\x01\x01",  # iinc 1 1
    b"\x57",  # pop
    b"\xb1",  # return
    b"\xac",  # ireturn
    b"\xbf",  # athrow
]
BRANCHES = [0x99, 0x9A, 0xA7, 0xA8, 0xC6]  # ifeq, ifne, goto, jsr, ifnull


@strategies.composite
def method_bodies(draw) -> Tuple[bytes, List[ExceptionHandler]]:
    shapes = draw(
        lists(strategies.one_of(sampled_from(STRAIGHT), sampled_from(BRANCHES)), min_size=1, max_size=40)
    )
    offsets: List[int] = []
    position = 0
    for shape in shapes:
        offsets.append(position)
        position += len(shape) if isinstance(shape, bytes) else 3

    code = bytearray()
    for shape, offset in zip(shapes, offsets):
        if isinstance(shape, bytes):
            code += shape
            continue
        target = draw(strategies.one_of(sampled_from(offsets), integers(-50, position + 50)))
        code += bytes([shape]) + ((target - offset) & 0xFFFF).to_bytes(2, "big")

    handler = strategies.builds(
        ExceptionHandler,
        start_pc=sampled_from(offsets),
        end_pc=integers(0, position),
        handler_pc=strategies.one_of(sampled_from(offsets), integers(0, position + 4)),
    )
    handlers = draw(lists(handler, max_size=3))
    return bytes(code), handlers


def _build(body: Tuple[bytes, List[ExceptionHandler]]):
    code, handlers = body
    return build_cfg(code, decode_code(code).instructions, handlers)


@settings(max_examples=200)
@given(method_bodies())
def test_blocks_partition_the_code(body) -> None:
    code, _ = body
    cfg = _build(body)

    assert cfg.blocks[0].start_offset == 0
    assert cfg.blocks[-1].end_offset == len(code)
    for left, right in zip(cfg.blocks, cfg.blocks[1:]):
        assert left.end_offset == right.start_offset
        assert left.start_offset < left.end_offset


@settings(max_examples=200)
@given(method_bodies())
def test_every_instruction_lands_in_its_block(body) -> None:
    code, _ = body
    cfg = _build(body)

    placed = [ins.offset for block in cfg.blocks for ins in block.instructions]
    assert placed == [ins.offset for ins in decode_code(code).instructions]
    for block in cfg.blocks:
        assert all(block.contains(ins.offset) for ins in block.instructions)


@settings(max_examples=200)
@given(method_bodies())
def test_edges_connect_block_starts(body) -> None:
    cfg = _build(body)
    starts = {block.start_offset for block in cfg.blocks}

    for edge in cfg.edges:
        assert edge.from_offset in starts
        assert edge.to in starts


@given(method_bodies())
def test_construction_is_deterministic(body) -> None:
    assert _build(body) == _build(body)


@given(method_bodies())
def test_goto_blocks_never_fall_through(body) -> None:
    cfg = _build(body)
    for block in cfg.blocks:
        last = block.last
        if last is None or last.opcode not in (0xA7, 0xC8):
            continue
        kinds = {edge.kind for edge in cfg.outgoing(block.start_offset)}
        assert EdgeKind.FALL_THROUGH not in kinds
