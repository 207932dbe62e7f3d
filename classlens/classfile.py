"""Class file reader producing :class:`~classlens.ir.Class` values."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .constant_pool import ByteStream, ConstantPool
from .errors import ClassFormatError, ConstantPoolError, DecodeError
from .ir import Class, ExceptionHandler, Method, MethodAccess
from .pipeline import build_method

MAGIC = 0xCAFEBABE

logger = logging.getLogger(__name__)


def read_class(
    data: bytes,
    artifact_index: int = 0,
    *,
    on_decode_error: str = "fail",
) -> Class:
    """Parse class file ``data`` and decode every method body.

    ``on_decode_error`` is the caller's policy for methods whose code cannot
    be decoded: ``"fail"`` raises :class:`ClassFormatError` naming the method,
    ``"skip-method"`` logs a warning and leaves the method out of the class.
    """

    stream = ByteStream(data)
    magic = stream.u4()
    if magic != MAGIC:
        raise ClassFormatError(f"bad class file magic 0x{magic:08X}")
    stream.skip(4)  # minor_version, major_version

    pool = ConstantPool.parse(stream)
    stream.skip(2)  # access_flags
    this_index = stream.u2()
    super_index = stream.u2()
    try:
        name = pool.class_name(this_index)
        super_name = pool.class_name(super_index) if super_index else None
    except ConstantPoolError as exc:
        raise ClassFormatError(f"cannot resolve class name: {exc}") from exc

    stream.skip(2 * stream.u2())  # interfaces
    _skip_members(stream)  # fields
    methods = _read_methods(stream, pool, name, on_decode_error)
    _skip_attributes(stream)

    return Class(
        name=name,
        super_name=super_name,
        referenced_classes=referenced_classes(pool, name),
        methods=tuple(methods),
        artifact_index=artifact_index,
    )


def normalize_class_name(raw: str) -> Optional[str]:
    """Strip array dimensions from ``raw``; primitive arrays yield ``None``."""

    if not raw.startswith("["):
        return raw
    element = raw.lstrip("[")
    if element.startswith("L") and element.endswith(";"):
        return element[1:-1]
    return None


def referenced_classes(pool: ConstantPool, own_name: str) -> Tuple[str, ...]:
    names = set()
    try:
        for raw in pool.iter_class_names():
            normalized = normalize_class_name(raw)
            if normalized is not None:
                names.add(normalized)
    except ConstantPoolError as exc:
        raise ClassFormatError(f"cannot resolve referenced class: {exc}") from exc
    names.discard(own_name)
    return tuple(sorted(names))


def _read_methods(
    stream: ByteStream, pool: ConstantPool, class_name: str, on_decode_error: str
) -> List[Method]:
    methods: List[Method] = []
    for _ in range(stream.u2()):
        access = MethodAccess.from_flags(stream.u2())
        name = _utf8(pool, stream.u2())
        descriptor = _utf8(pool, stream.u2())

        code = b""
        handlers: Tuple[ExceptionHandler, ...] = ()
        for _ in range(stream.u2()):
            attribute = _utf8(pool, stream.u2())
            body = stream.raw(stream.u4())
            if attribute == "Code":
                code, handlers = _parse_code_attribute(body, pool)

        try:
            method = build_method(name, descriptor, access, code, handlers, pool)
        except DecodeError as exc:
            if on_decode_error == "skip-method":
                logger.warning("skipping %s.%s%s: %s", class_name, name, descriptor, exc)
                continue
            raise ClassFormatError(
                f"failed to decode {class_name}.{name}{descriptor}: {exc}"
            ) from exc

        for anomaly in method.cfg.anomalies:
            logger.debug(
                "%s.%s%s: %s (offset %d)",
                class_name,
                name,
                descriptor,
                anomaly.reason,
                anomaly.offset,
            )
        methods.append(method)
    return methods


def _parse_code_attribute(
    body: bytes, pool: ConstantPool
) -> Tuple[bytes, Tuple[ExceptionHandler, ...]]:
    stream = ByteStream(body)
    stream.skip(4)  # max_stack, max_locals
    code = stream.raw(stream.u4())
    handlers: List[ExceptionHandler] = []
    for _ in range(stream.u2()):
        start_pc, end_pc, handler_pc, catch_index = (
            stream.u2(),
            stream.u2(),
            stream.u2(),
            stream.u2(),
        )
        try:
            catch_type = pool.class_name(catch_index) if catch_index else None
        except ConstantPoolError as exc:
            raise ClassFormatError(f"bad exception handler catch type: {exc}") from exc
        handlers.append(ExceptionHandler(start_pc, end_pc, handler_pc, catch_type))
    # Nested attributes (LineNumberTable, StackMapTable, ...) are not needed.
    return code, tuple(handlers)


def _skip_members(stream: ByteStream) -> None:
    for _ in range(stream.u2()):
        stream.skip(6)  # access_flags, name_index, descriptor_index
        _skip_attributes(stream)


def _skip_attributes(stream: ByteStream) -> None:
    for _ in range(stream.u2()):
        stream.skip(2)
        stream.skip(stream.u4())


def _utf8(pool: ConstantPool, index: int) -> str:
    try:
        return pool.utf8(index)
    except ConstantPoolError as exc:
        raise ClassFormatError(str(exc)) from exc
