"""Control-flow graph construction for decoded method bodies."""

from __future__ import annotations

from bisect import bisect_left
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .branches import branch_targets
from .ir import (
    BasicBlock,
    CfgAnomaly,
    ControlFlowGraph,
    EdgeKind,
    ExceptionHandler,
    FlowEdge,
    Instruction,
)
from .opcodes import is_branch, is_exit, is_unconditional_branch


def insert_leader(leaders: List[int], offset: int) -> None:
    """Insert ``offset`` into the sorted, duplicate-free ``leaders`` list."""

    position = bisect_left(leaders, offset)
    if position == len(leaders) or leaders[position] != offset:
        leaders.insert(position, offset)


class ControlFlowGraphBuilder:
    """Partition one method's code into basic blocks and connect them.

    A builder is single-use: it carries the branch targets discovered during
    leader analysis over to edge construction so every switch table is only
    parsed once per pass.
    """

    def __init__(
        self,
        code: bytes,
        instructions: Sequence[Instruction],
        handlers: Sequence[ExceptionHandler] = (),
    ) -> None:
        self.code = code
        self.instructions = instructions
        self.handlers = handlers
        self._targets: Dict[int, List[int]] = {}
        self._anomalies: List[CfgAnomaly] = []

    def build(self) -> ControlFlowGraph:
        if not self.code:
            return ControlFlowGraph()

        leaders = self._discover_leaders()
        blocks = self._materialise_blocks(leaders)
        edges = self._link_edges(blocks)
        return ControlFlowGraph(tuple(blocks), tuple(edges), tuple(self._anomalies))

    def _discover_leaders(self) -> List[int]:
        code_length = len(self.code)
        leaders: List[int] = [0]
        for handler in self.handlers:
            if handler.handler_pc >= code_length:
                self._note(handler.handler_pc, "exception handler starts outside the code")
            insert_leader(leaders, handler.handler_pc)

        for instruction in self.instructions:
            if is_branch(instruction.opcode):
                targets = branch_targets(self.code, instruction.offset) or []
                self._targets[instruction.offset] = targets
                for target in targets:
                    insert_leader(leaders, target)
                # Bytes after a branch start a new region even when the branch
                # is unconditional and nothing falls into them.
                insert_leader(leaders, instruction.next_offset)
            elif is_exit(instruction.opcode):
                insert_leader(leaders, instruction.next_offset)

        return [offset for offset in leaders if offset < code_length]

    def _materialise_blocks(self, leaders: Sequence[int]) -> List[BasicBlock]:
        bounds = list(leaders) + [len(self.code)]
        blocks: List[BasicBlock] = []
        index = 0
        instructions = self.instructions
        for start, end in zip(bounds, bounds[1:]):
            members: List[Instruction] = []
            while index < len(instructions) and instructions[index].offset < end:
                members.append(instructions[index])
                index += 1
            blocks.append(BasicBlock(start, end, tuple(members)))
        return blocks

    def _link_edges(self, blocks: Sequence[BasicBlock]) -> List[FlowEdge]:
        starts: Set[int] = {block.start_offset for block in blocks}
        boundaries: Set[int] = {instruction.offset for instruction in self.instructions}
        edges: List[FlowEdge] = []

        for block in blocks:
            last = block.last
            if last is None:
                continue

            targets = self._targets.get(last.offset)
            if targets is not None:
                for target in targets:
                    self._connect(edges, block, target, starts, boundaries)
                if not is_unconditional_branch(last.opcode):
                    self._fall_through(edges, block, starts)
            elif not is_exit(last.opcode):
                self._fall_through(edges, block, starts)

            self._link_handlers(edges, block, starts)
        return edges

    def _connect(
        self,
        edges: List[FlowEdge],
        block: BasicBlock,
        target: int,
        starts: Set[int],
        boundaries: Set[int],
    ) -> None:
        if target not in starts:
            self._note(target, f"branch from block {block.start_offset} leaves the code")
            return
        if target not in boundaries:
            self._note(target, f"branch from block {block.start_offset} lands inside an instruction")
        edges.append(FlowEdge(block.start_offset, target, EdgeKind.BRANCH))

    def _fall_through(
        self, edges: List[FlowEdge], block: BasicBlock, starts: Set[int]
    ) -> None:
        if block.end_offset not in starts:
            self._note(block.end_offset, f"block {block.start_offset} falls off the end of the code")
            return
        edges.append(FlowEdge(block.start_offset, block.end_offset, EdgeKind.FALL_THROUGH))

    def _link_handlers(
        self, edges: List[FlowEdge], block: BasicBlock, starts: Set[int]
    ) -> None:
        linked: List[int] = []
        for handler in self.handlers:
            overlaps = block.start_offset < handler.end_pc and block.end_offset > handler.start_pc
            if not overlaps or handler.handler_pc not in starts:
                continue
            if handler.handler_pc in linked:
                continue
            linked.append(handler.handler_pc)
            edges.append(FlowEdge(block.start_offset, handler.handler_pc, EdgeKind.EXCEPTION))

    def _note(self, offset: int, reason: str) -> None:
        self._anomalies.append(CfgAnomaly(offset, reason))


def build_cfg(
    code: bytes,
    instructions: Sequence[Instruction],
    handlers: Optional[Sequence[ExceptionHandler]] = None,
) -> ControlFlowGraph:
    """Build the control-flow graph for ``code``.

    ``instructions`` must be the complete, offset-ordered output of
    :func:`classlens.decoder.decode_code` for the same buffer.
    """

    return ControlFlowGraphBuilder(code, instructions, handlers or ()).build()


def render_cfgs(graphs: Sequence[Tuple[str, ControlFlowGraph]]) -> str:
    """Render ``(title, graph)`` pairs into a single textual listing."""

    lines: List[str] = []
    for title, graph in graphs:
        lines.append(f"{title}\n{graph.to_text().rstrip()}")
    return "\n\n".join(lines) + "\n"
