"""Dataclasses describing parsed JVM classes, methods and their CFGs.

Everything in this module is frozen.  Instances are produced once by
:func:`classlens.pipeline.build_method` and :func:`classlens.classfile.read_class`
and are then shared read-only between rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .opcodes import mnemonic


class CallKind(Enum):
    """Dispatch mechanism of an invoke instruction."""

    VIRTUAL = auto()
    INTERFACE = auto()
    SPECIAL = auto()
    STATIC = auto()


class EdgeKind(Enum):
    """Classification of a CFG edge."""

    FALL_THROUGH = auto()
    BRANCH = auto()
    EXCEPTION = auto()


@dataclass(frozen=True)
class CallSite:
    owner: str
    name: str
    descriptor: str
    kind: CallKind
    offset: int

    def describe(self) -> str:
        return f"{self.owner}.{self.name}{self.descriptor}"


# ---------------------------------------------------------------------------
# instruction kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Invoke:
    call: CallSite


@dataclass(frozen=True)
class ConstString:
    value: str


@dataclass(frozen=True)
class Other:
    opcode: int


InstructionKind = Union[Invoke, ConstString, Other]


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction at a unique bytecode offset."""

    offset: int
    opcode: int
    length: int
    kind: InstructionKind

    @property
    def next_offset(self) -> int:
        return self.offset + self.length

    @property
    def mnemonic(self) -> str:
        return mnemonic(self.opcode)

    def describe(self) -> str:
        text = f"{self.offset:5d}: {self.mnemonic}"
        if isinstance(self.kind, Invoke):
            text += f" {self.kind.call.describe()}"
        elif isinstance(self.kind, ConstString):
            text += f" {self.kind.value!r}"
        return text


# ---------------------------------------------------------------------------
# control flow
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BasicBlock:
    """Half-open bytecode range ``[start_offset, end_offset)``."""

    start_offset: int
    end_offset: int
    instructions: Tuple[Instruction, ...] = ()

    @property
    def last(self) -> Optional[Instruction]:
        return self.instructions[-1] if self.instructions else None

    def contains(self, offset: int) -> bool:
        return self.start_offset <= offset < self.end_offset


@dataclass(frozen=True)
class FlowEdge:
    from_offset: int
    to: int
    kind: EdgeKind


@dataclass(frozen=True)
class CfgAnomaly:
    """Soft decode problem that was tolerated while building a graph."""

    offset: int
    reason: str


@dataclass(frozen=True)
class ControlFlowGraph:
    """Blocks partitioning a method's code plus the edges between them."""

    blocks: Tuple[BasicBlock, ...] = ()
    edges: Tuple[FlowEdge, ...] = ()
    anomalies: Tuple[CfgAnomaly, ...] = ()

    def successors(self) -> Dict[int, List[int]]:
        """Return ``start_offset -> [successor start offsets]`` in edge order."""

        graph: Dict[int, List[int]] = {block.start_offset: [] for block in self.blocks}
        for edge in self.edges:
            graph[edge.from_offset].append(edge.to)
        return graph

    def outgoing(self, start_offset: int) -> Iterator[FlowEdge]:
        return (edge for edge in self.edges if edge.from_offset == start_offset)

    def to_text(self) -> str:
        lines: List[str] = []
        for block in self.blocks:
            succ = [
                f"{edge.kind.name.lower()}:{edge.to}"
                for edge in self.outgoing(block.start_offset)
            ]
            lines.append(
                f"  block [{block.start_offset}, {block.end_offset}) succ={succ}"
            )
            for instruction in block.instructions:
                lines.append(f"    {instruction.describe()}")
        for anomaly in self.anomalies:
            lines.append(f"  anomaly at {anomaly.offset}: {anomaly.reason}")
        return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# classes and methods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExceptionHandler:
    """Exception table entry from a ``Code`` attribute."""

    start_pc: int
    end_pc: int
    handler_pc: int
    catch_type: Optional[str] = None


@dataclass(frozen=True)
class MethodAccess:
    is_public: bool = False
    is_static: bool = False
    is_abstract: bool = False

    @classmethod
    def from_flags(cls, flags: int) -> "MethodAccess":
        return cls(
            is_public=bool(flags & 0x0001),
            is_static=bool(flags & 0x0008),
            is_abstract=bool(flags & 0x0400),
        )


@dataclass(frozen=True)
class Method:
    """A method with its bytecode and everything derived from it.

    ``cfg``, ``calls`` and ``string_literals`` are computed from ``bytecode``
    in one pass by :func:`classlens.pipeline.build_method`; construct methods
    through that function so the derived views always agree.
    """

    name: str
    descriptor: str
    access: MethodAccess
    bytecode: bytes
    cfg: ControlFlowGraph
    calls: Tuple[CallSite, ...] = ()
    string_literals: Tuple[str, ...] = ()
    exception_handlers: Tuple[ExceptionHandler, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}{self.descriptor}"


@dataclass(frozen=True)
class Class:
    name: str
    super_name: Optional[str]
    referenced_classes: Tuple[str, ...] = ()
    methods: Tuple[Method, ...] = ()
    artifact_index: int = 0

    def find_method(self, name: str, descriptor: str) -> Optional[Method]:
        for method in self.methods:
            if method.name == name and method.descriptor == descriptor:
                return method
        return None


__all__ = [
    "CallKind",
    "EdgeKind",
    "CallSite",
    "Invoke",
    "ConstString",
    "Other",
    "InstructionKind",
    "Instruction",
    "BasicBlock",
    "FlowEdge",
    "CfgAnomaly",
    "ControlFlowGraph",
    "ExceptionHandler",
    "MethodAccess",
    "Method",
    "Class",
]
