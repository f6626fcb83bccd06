"""
stackeval Data Models
======================

Pydantic-based models for everything that flows between the decoder, the
symbol table, the word classifier and the renderer: symbols and section
flags supplied by the ELF reader, the decoded :class:`MemoryDump`, the
tagged :data:`Classification` of each machine word, and the render results
(flat rows, trace frames, blank-stack runs, ignored-symbol notices).

All models are immutable once built, except the result containers that a
single walk fills in.
"""

from __future__ import annotations

import enum
from typing import Annotated, Literal, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ByteOrder(str, enum.Enum):
    """Byte order of machine words in the dumped memory."""
    BIG = "big"
    LITTLE = "little"

    @property
    def struct_prefix(self) -> str:
        """:mod:`struct` / numpy byte-order character."""
        return ">" if self is ByteOrder.BIG else "<"


class Category(str, enum.Enum):
    """Display category of a rendered word.

    The first five describe what kind of section a referenced symbol
    lives in; the rest describe words that are not symbol references.
    """
    TEXT = "text"
    TEXT_ZERO_LENGTH = "text_zero_length"
    DATA = "data"
    BSS = "bss"
    UNKNOWN = "unknown"
    LOCAL_POINTER = "local_pointer"
    VALUE = "value"
    BYTES = "bytes"


class WordKind(str, enum.Enum):
    """Discriminator of :data:`Classification` plus raw byte fragments."""
    SYMBOL = "symbol"
    STACK_LOCAL = "stack_local"
    RAW = "raw"
    BYTES = "bytes"


# ---------------------------------------------------------------------------
# Binary-side inputs
# ---------------------------------------------------------------------------

class Symbol(BaseModel):
    """A function or data object from the binary's symbol table.

    Attributes:
        name: Symbol name.
        address: Symbol value (start address).
        size: Extent in bytes; 0 means unknown ("unbounded").
        section_index: Index into the section list the symbol belongs to.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    address: int = Field(ge=0)
    size: int = Field(default=0, ge=0)
    section_index: int = 0

    @property
    def is_unbounded(self) -> bool:
        return self.size == 0

    def __str__(self) -> str:
        return f"{self.name} @0x{self.address:x} ({self.size} bytes, sec {self.section_index})"


class SectionFlags(BaseModel):
    """Flags of one binary section, indexed like :attr:`Symbol.section_index`."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    executable: bool = False
    writable: bool = False
    allocated: bool = False


class ArchInfo(BaseModel):
    """Architecture parameters taken from the binary's header."""
    model_config = ConfigDict(frozen=True)

    machine: str = "unknown"
    word_width: Literal[4, 8] = 4
    byte_order: ByteOrder = ByteOrder.BIG


class SymbolLoadStats(BaseModel):
    """Counters collected while filtering the raw symbol table."""
    seen_by_type: dict[str, int] = Field(default_factory=dict)
    loaded_by_type: dict[str, int] = Field(default_factory=dict)
    loaded_by_section: dict[int, int] = Field(default_factory=dict)
    excluded: list[str] = Field(default_factory=list)

    @property
    def loaded(self) -> int:
        return sum(self.loaded_by_type.values())


# ---------------------------------------------------------------------------
# Decoded memory
# ---------------------------------------------------------------------------

class MemoryDump(BaseModel):
    """Contiguous memory decoded from dump text.

    Attributes:
        base_address: Address of ``data[0]``.
        data: The decoded bytes, gap-free.
        word_width: Machine word size in bytes.
        byte_order: Byte order used to assemble words.
    """
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    base_address: int = Field(ge=0)
    data: bytes = b""
    word_width: Literal[4, 8] = 4
    byte_order: ByteOrder = ByteOrder.BIG

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end_address(self) -> int:
        """First address past the end of the dump."""
        return self.base_address + len(self.data)

    @property
    def head_length(self) -> int:
        """Bytes before the first word-aligned address."""
        misalign = self.base_address % self.word_width
        if misalign == 0:
            return 0
        return min(self.word_width - misalign, len(self.data))

    @property
    def head_bytes(self) -> bytes:
        return self.data[: self.head_length]

    @property
    def tail_bytes(self) -> bytes:
        """Trailing bytes too short to form a whole word."""
        remainder = (len(self.data) - self.head_length) % self.word_width
        return self.data[len(self.data) - remainder:] if remainder else b""

    def words(self) -> list[tuple[int, int]]:
        """Return ``(address, value)`` for every whole aligned word."""
        head = self.head_length
        count = (len(self.data) - head) // self.word_width
        if count <= 0:
            return []
        dtype = np.dtype(f"{self.byte_order.struct_prefix}u{self.word_width}")
        values = np.frombuffer(self.data, dtype=dtype, count=count, offset=head)
        start = self.base_address + head
        return [
            (start + i * self.word_width, value)
            for i, value in enumerate(values.tolist())
        ]


class DecodeStats(BaseModel):
    """Line counters from one decoder run."""
    lines: int = 0
    data_lines: int = 0
    absolute_lines: int = 0
    skipped_lines: int = 0
    mismatched_lines: int = 0


# ---------------------------------------------------------------------------
# Classification (tagged variant)
# ---------------------------------------------------------------------------

class SymbolRef(BaseModel):
    """The word points into a known symbol."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[WordKind.SYMBOL] = WordKind.SYMBOL
    symbol: Symbol
    offset: int = Field(ge=0)
    category: Category = Category.UNKNOWN


class StackLocal(BaseModel):
    """The word is numerically close to its own address.

    ``offset`` is signed: ``word - current_address``.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal[WordKind.STACK_LOCAL] = WordKind.STACK_LOCAL
    offset: int

    @property
    def sign(self) -> str:
        return "-" if self.offset < 0 else "+"

    @property
    def distance(self) -> int:
        return abs(self.offset)


class Raw(BaseModel):
    """Nothing better is known about the word."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[WordKind.RAW] = WordKind.RAW
    value: int


Classification = Annotated[
    Union[SymbolRef, StackLocal, Raw],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Render results
# ---------------------------------------------------------------------------

class RenderEvent(BaseModel):
    """One rendered word (or fragment of unaligned bytes).

    Attributes:
        address: Address of the word.
        value: Numeric word value; ``None`` for byte fragments.
        text: Fixed-width textual value for display.
        kind: What sort of word this is.
        category: Display category.
        detail: ``name{0xbase + 0xoff = 0xword}`` for symbol references.
        classification: The full classification, ``None`` for byte fragments.
    """
    address: int
    value: Optional[int] = None
    text: str
    kind: WordKind
    category: Category
    detail: Optional[str] = None
    classification: Optional[Classification] = None


class AnnotatedRow(BaseModel):
    """A display row of the flat listing with its symbol details."""
    address: int
    events: list[RenderEvent] = Field(default_factory=list)
    details: list[str] = Field(default_factory=list)


class IgnoredSymbol(BaseModel):
    """A zero-size symbol match discarded by the capped containment check."""
    symbol: Symbol
    address: int
    count: int = 1

    @property
    def message(self) -> str:
        return f"Symbol last ignored at 0x{self.address:x}: {self.symbol}"


class FrameWord(BaseModel):
    """A word attached to a reconstructed frame."""
    address: int
    value: int
    is_stack_relative: bool = False
    offset: Optional[int] = None


class StackFrame(BaseModel):
    """Words following a symbol reference, up to the next one.

    Attributes:
        address: Where the opening symbol reference was found.
        caller: The referenced symbol (usually a return address).
        offset: Offset of the reference within ``caller``.
        words: Non-symbol words seen until the next reference.
    """
    address: int
    caller: Symbol
    offset: int = 0
    words: list[FrameWord] = Field(default_factory=list)


class BlankRun(BaseModel):
    """A run of consecutive sentinel-filled words."""
    start: int
    length: int = 0
    ended: bool = True

    @property
    def end(self) -> int:
        return self.start + self.length


class AnnotationResult(BaseModel):
    """Outcome of a flat annotation walk."""
    word_width: int
    lower: Optional[int] = None
    upper: Optional[int] = None
    rows: list[AnnotatedRow] = Field(default_factory=list)
    ignored_symbols: list[IgnoredSymbol] = Field(default_factory=list)

    @property
    def events(self) -> list[RenderEvent]:
        return [event for row in self.rows for event in row.events]


class TraceResult(BaseModel):
    """Outcome of a trace walk."""
    word_width: int
    lower: Optional[int] = None
    upper: Optional[int] = None
    events: list[RenderEvent] = Field(default_factory=list)
    frames: list[StackFrame] = Field(default_factory=list)
    blank_runs: list[BlankRun] = Field(default_factory=list)
    ignored_symbols: list[IgnoredSymbol] = Field(default_factory=list)

    @property
    def anomalies(self) -> list[str]:
        return [
            f"Blank stack starting at 0x{run.start:x} never ended"
            for run in self.blank_runs
            if not run.ended
        ]


class LegendEntry(BaseModel):
    """One line of the category legend."""
    category: Category
    label: str
    description: str


class LoadedBinary(BaseModel):
    """Everything taken from the symbol source for one run."""
    path: str
    arch: ArchInfo
    sections: list[SectionFlags] = Field(default_factory=list)
    stats: SymbolLoadStats = Field(default_factory=SymbolLoadStats)

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, v: object) -> str:
        return str(v)
