"""Exception hierarchy shared by the decoder, class reader and scanner."""

from __future__ import annotations

from typing import Optional


class ClassLensError(Exception):
    """Base class for every error raised by :mod:`classlens`."""


class DecodeError(ClassLensError, ValueError):
    """A method body could not be decoded.

    Decoding is all-or-nothing: once one of these is raised the caller never
    sees a partially built control-flow graph for the method.
    """

    def __init__(self, message: str, *, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)
        self.offset = offset


class TruncatedCodeError(DecodeError):
    """An opcode or operand extends past the end of the code buffer."""


class InvalidSwitchError(DecodeError):
    """A ``tableswitch``/``lookupswitch`` header describes an impossible table."""


class InvalidOpcodeError(DecodeError):
    """The byte at an instruction boundary is not an assigned JVM opcode."""


class ConstantPoolError(DecodeError):
    """A constant pool reference is out of range or points at the wrong kind."""


class ClassFormatError(ClassLensError, ValueError):
    """Class file bytes are malformed or a method failed to decode."""


class ScanError(ClassLensError):
    """An input path, archive or classpath entry could not be processed."""


__all__ = [
    "ClassLensError",
    "DecodeError",
    "TruncatedCodeError",
    "InvalidSwitchError",
    "InvalidOpcodeError",
    "ConstantPoolError",
    "ClassFormatError",
    "ScanError",
]
