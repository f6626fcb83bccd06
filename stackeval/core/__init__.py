"""
stackeval Core Module
======================

Data models and the exception hierarchy.  The engine that ties a symbol
source, a decoded dump and the annotation walks together lives in
:mod:`stackeval.core.engine`; it imports the analyzers, which import these
models, so it is not re-exported here.
"""

from stackeval.core.models import (
    AnnotationResult,
    ByteOrder,
    Category,
    MemoryDump,
    Symbol,
    TraceResult,
)
from stackeval.core.errors import (
    AddressContinuityError,
    BinaryFormatError,
    DumpDecodeError,
    EncodingError,
    FormatError,
    StackEvalError,
    TokenWidthError,
)

__all__ = [
    "AddressContinuityError",
    "AnnotationResult",
    "BinaryFormatError",
    "ByteOrder",
    "Category",
    "DumpDecodeError",
    "EncodingError",
    "FormatError",
    "MemoryDump",
    "StackEvalError",
    "Symbol",
    "TokenWidthError",
    "TraceResult",
]
