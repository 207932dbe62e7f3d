"""Blocks that no edge path from the method entry can reach."""

from __future__ import annotations

from collections import deque
from typing import List, Set

from ..ir import ControlFlowGraph
from .base import Finding, Rule, RuleMetadata, iter_methods, location_of


def reachable_blocks(cfg: ControlFlowGraph) -> Set[int]:
    """Return start offsets of blocks reachable from offset 0 over any edge kind."""

    if not cfg.blocks:
        return set()
    successors = cfg.successors()
    seen = {0}
    queue = deque([0])
    while queue:
        current = queue.popleft()
        for target in successors.get(current, ()):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def unreachable_regions(cfg: ControlFlowGraph) -> List[int]:
    """Start offsets of maximal runs of adjacent unreachable blocks with code."""

    reachable = reachable_blocks(cfg)
    regions: List[int] = []
    previous_dead = False
    for block in cfg.blocks:
        dead = block.start_offset not in reachable and bool(block.instructions)
        if dead and not previous_dead:
            regions.append(block.start_offset)
        previous_dead = dead
    return regions


class DeadCodeRule(Rule):
    def metadata(self) -> RuleMetadata:
        return RuleMetadata(
            id="DEAD_CODE",
            name="Unreachable code",
            description="Bytecode that cannot be reached from the method entry",
        )

    def run(self, context) -> List[Finding]:
        findings: List[Finding] = []
        for cls, method in iter_methods(context.classes):
            for offset in unreachable_regions(method.cfg):
                findings.append(
                    self.finding(
                        f"Unreachable code at offset {offset}",
                        location_of(cls, method),
                    )
                )
        return findings
