"""Constant pool parsing and typed lookups.

The decoder only ever needs three questions answered: what member does an
invoke reference, is an ``ldc`` operand a string, and what is the name of a
class entry.  :class:`ConstantPool` answers those and raises
:class:`~classlens.errors.ConstantPoolError` whenever an index is out of range
or names an entry of the wrong kind.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import ClassFormatError, ConstantPoolError

# Tag values from the class file format.
UTF8 = 1
INTEGER = 3
FLOAT = 4
LONG = 5
DOUBLE = 6
CLASS = 7
STRING = 8
FIELDREF = 9
METHODREF = 10
INTERFACE_METHODREF = 11
NAME_AND_TYPE = 12
METHOD_HANDLE = 15
METHOD_TYPE = 16
DYNAMIC = 17
INVOKE_DYNAMIC = 18
MODULE = 19
PACKAGE = 20

# Entries an ldc/ldc_w may legally reference.
LOADABLE_TAGS = frozenset({INTEGER, FLOAT, CLASS, STRING, METHOD_HANDLE, METHOD_TYPE, DYNAMIC})
METHOD_REF_TAGS = frozenset({METHODREF, INTERFACE_METHODREF})


class ByteStream:
    """Sequential big-endian reader over class file bytes."""

    def __init__(self, data: bytes, position: int = 0) -> None:
        self.data = data
        self.position = position

    def _take(self, size: int) -> bytes:
        end = self.position + size
        if end > len(self.data):
            raise ClassFormatError(
                f"unexpected end of class data at byte {self.position} "
                f"(need {size}, have {len(self.data) - self.position})"
            )
        chunk = self.data[self.position : end]
        self.position = end
        return chunk

    def u1(self) -> int:
        return self._take(1)[0]

    def u2(self) -> int:
        return int.from_bytes(self._take(2), "big")

    def u4(self) -> int:
        return int.from_bytes(self._take(4), "big")

    def raw(self, size: int) -> bytes:
        return self._take(size)

    def skip(self, size: int) -> None:
        self._take(size)


def decode_modified_utf8(raw: bytes) -> str:
    """Decode the JVM's modified UTF-8 encoding.

    NUL is stored as ``C0 80`` and supplementary characters as two encoded
    surrogates, neither of which the standard codec accepts directly.
    """

    text = raw.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    if any("\ud800" <= ch <= "\udfff" for ch in text):
        text = text.encode("utf-16-be", "surrogatepass").decode("utf-16-be", "replace")
    return text


@dataclass(frozen=True)
class Constant:
    """A single constant pool entry.

    ``value`` depends on ``tag``: text for ``Utf8``, numbers for numeric
    constants and a tuple of pool indices for every reference kind.
    """

    tag: int
    value: object


class ConstantPool(Sequence[Optional[Constant]]):
    """1-indexed constant pool.  Slot 0 and the slots after long/double are ``None``."""

    def __init__(self, entries: Iterable[Optional[Constant]]) -> None:
        self._entries: List[Optional[Constant]] = list(entries)

    @classmethod
    def parse(cls, stream: ByteStream) -> "ConstantPool":
        count = stream.u2()
        entries: List[Optional[Constant]] = [None]
        index = 1
        while index < count:
            tag = stream.u1()
            entries.append(_parse_entry(tag, stream, index))
            index += 1
            if tag in (LONG, DOUBLE):
                entries.append(None)
                index += 1
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index):  # type: ignore[override]
        return self._entries[index]

    def __iter__(self) -> Iterator[Optional[Constant]]:
        return iter(self._entries)

    # ------------------------------------------------------------------
    # typed lookups
    # ------------------------------------------------------------------

    def entry(self, index: int) -> Constant:
        if not 0 < index < len(self._entries):
            raise ConstantPoolError(
                f"constant pool index {index} out of range (pool size {len(self._entries)})"
            )
        constant = self._entries[index]
        if constant is None:
            raise ConstantPoolError(f"constant pool index {index} is an unusable slot")
        return constant

    def _expect(self, index: int, tags: Iterable[int], what: str) -> Constant:
        constant = self.entry(index)
        if constant.tag not in tags:
            raise ConstantPoolError(
                f"constant pool index {index} is tag {constant.tag}, expected {what}"
            )
        return constant

    def utf8(self, index: int) -> str:
        return str(self._expect(index, (UTF8,), "Utf8").value)

    def class_name(self, index: int) -> str:
        (name_index,) = self._expect(index, (CLASS,), "Class").value  # type: ignore[misc]
        return self.utf8(name_index)

    def name_and_type(self, index: int) -> Tuple[str, str]:
        name_index, descriptor_index = self._expect(  # type: ignore[misc]
            index, (NAME_AND_TYPE,), "NameAndType"
        ).value
        return self.utf8(name_index), self.utf8(descriptor_index)

    def method_ref(self, index: int) -> Tuple[str, str, str]:
        """Return ``(owner, name, descriptor)`` for a method reference."""

        class_index, nat_index = self._expect(  # type: ignore[misc]
            index, METHOD_REF_TAGS, "Methodref or InterfaceMethodref"
        ).value
        name, descriptor = self.name_and_type(nat_index)
        return self.class_name(class_index), name, descriptor

    def loadable_string(self, index: int) -> Optional[str]:
        """Return the text of a ``String`` constant, ``None`` for other loadables."""

        constant = self._expect(index, LOADABLE_TAGS, "a loadable constant")
        if constant.tag != STRING:
            return None
        (string_index,) = constant.value  # type: ignore[misc]
        return self.utf8(string_index)

    def iter_class_names(self) -> Iterator[str]:
        for constant in self._entries:
            if constant is not None and constant.tag == CLASS:
                (name_index,) = constant.value  # type: ignore[misc]
                yield self.utf8(name_index)


def _parse_entry(tag: int, stream: ByteStream, index: int) -> Constant:
    if tag == UTF8:
        length = stream.u2()
        try:
            return Constant(tag, decode_modified_utf8(stream.raw(length)))
        except UnicodeDecodeError as exc:
            raise ClassFormatError(f"malformed Utf8 constant at index {index}: {exc}") from exc
    if tag == INTEGER:
        return Constant(tag, struct.unpack(">i", stream.raw(4))[0])
    if tag == FLOAT:
        return Constant(tag, struct.unpack(">f", stream.raw(4))[0])
    if tag == LONG:
        return Constant(tag, struct.unpack(">q", stream.raw(8))[0])
    if tag == DOUBLE:
        return Constant(tag, struct.unpack(">d", stream.raw(8))[0])
    if tag in (CLASS, STRING, METHOD_TYPE, MODULE, PACKAGE):
        return Constant(tag, (stream.u2(),))
    if tag in (FIELDREF, METHODREF, INTERFACE_METHODREF, NAME_AND_TYPE, DYNAMIC, INVOKE_DYNAMIC):
        return Constant(tag, (stream.u2(), stream.u2()))
    if tag == METHOD_HANDLE:
        return Constant(tag, (stream.u1(), stream.u2()))
    raise ClassFormatError(f"unknown constant pool tag {tag} at index {index}")
