"""High level entry point turning raw method code into IR."""

from __future__ import annotations

from typing import Optional, Sequence

from .cfg import build_cfg
from .constant_pool import ConstantPool
from .decoder import decode_code
from .ir import ExceptionHandler, Method, MethodAccess


def build_method(
    name: str,
    descriptor: str,
    access: MethodAccess,
    code: bytes,
    handlers: Sequence[ExceptionHandler] = (),
    pool: Optional[ConstantPool] = None,
) -> Method:
    """Decode ``code`` once and derive the CFG, call sites and literals from it.

    Any :class:`~classlens.errors.DecodeError` propagates unchanged; a
    :class:`Method` is only returned once every derived view is complete.
    """

    code = bytes(code)
    handlers = tuple(handlers)
    decoded = decode_code(code, pool)
    cfg = build_cfg(code, decoded.instructions, handlers)
    return Method(
        name=name,
        descriptor=descriptor,
        access=access,
        bytecode=code,
        cfg=cfg,
        calls=decoded.calls,
        string_literals=decoded.string_literals,
        exception_handlers=handlers,
    )
