"""
Word Classifier
================

Decides what a single machine word found in memory most likely is:

1. A reference into a known symbol.  Matches on zero-size symbols are
   only accepted within a capped span past the symbol's address; beyond
   it they are dropped and remembered in an :class:`IgnoredSymbolLog`.
2. A pointer into the surrounding stack, when the word is numerically
   close to the address it was found at.
3. An opaque value.

Symbol references always win over the stack-local heuristic.
"""

from __future__ import annotations

from typing import Optional, Sequence

from stackeval.analyzers.symbol_table import (
    MAX_UNBOUNDED_SYMBOL_SPAN,
    SymbolTable,
    symbol_contains,
)
from stackeval.core.models import (
    Category,
    Classification,
    IgnoredSymbol,
    LegendEntry,
    Raw,
    SectionFlags,
    StackLocal,
    Symbol,
    SymbolRef,
)

STACK_LOCAL_THRESHOLD: int = 0x1000


def symbol_category(symbol: Symbol, sections: Sequence[SectionFlags]) -> Category:
    """Derive the display category of *symbol* from its section's flags."""
    if not 0 <= symbol.section_index < len(sections):
        return Category.UNKNOWN

    section = sections[symbol.section_index]
    if section.executable:
        # A zero-length function symbol is itself worth flagging.
        return Category.TEXT_ZERO_LENGTH if symbol.size == 0 else Category.TEXT
    if section.writable and section.allocated:
        return Category.BSS
    if section.allocated:
        return Category.DATA
    return Category.UNKNOWN


def legend(stack_local_threshold: int = STACK_LOCAL_THRESHOLD) -> list[LegendEntry]:
    """Colour-independent description of every category a walk can emit."""
    return [
        LegendEntry(
            category=Category.TEXT_ZERO_LENGTH,
            label=".text zero-length",
            description="code symbol of unknown size",
        ),
        LegendEntry(category=Category.TEXT, label=".text", description="code symbol"),
        LegendEntry(category=Category.DATA, label=".data", description="initialised data object"),
        LegendEntry(category=Category.BSS, label=".bss", description="writable data object"),
        LegendEntry(
            category=Category.UNKNOWN,
            label="unknown",
            description="symbol in a section with no useful flags",
        ),
        LegendEntry(
            category=Category.LOCAL_POINTER,
            label="local pointer",
            description=f"value within {stack_local_threshold} bytes of its own address",
        ),
    ]


class IgnoredSymbolLog:
    """Accumulates discarded zero-size symbol matches, one entry per name.

    Each walk owns its own log, so repeated walks are independent.
    """

    def __init__(self) -> None:
        self._entries: dict[str, IgnoredSymbol] = {}

    def record(self, symbol: Symbol, address: int) -> None:
        entry = self._entries.get(symbol.name)
        if entry is None:
            self._entries[symbol.name] = IgnoredSymbol(symbol=symbol, address=address)
        else:
            entry.address = address
            entry.count += 1

    def entries(self) -> list[IgnoredSymbol]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


class WordClassifier:
    """Classifies words against a symbol table and its section flags.

    Args:
        symbols: The symbol table to consult.
        sections: Section flags indexed by ``Symbol.section_index``.
        max_unbounded_span: Span credited to zero-size symbols.
        stack_local_threshold: Maximum distance for a stack-local pointer.
    """

    def __init__(
        self,
        symbols: SymbolTable,
        sections: Sequence[SectionFlags] = (),
        *,
        max_unbounded_span: int = MAX_UNBOUNDED_SYMBOL_SPAN,
        stack_local_threshold: int = STACK_LOCAL_THRESHOLD,
    ) -> None:
        self.symbols = symbols
        self.sections = list(sections)
        self.max_unbounded_span = max_unbounded_span
        self.stack_local_threshold = stack_local_threshold

    def classify(
        self,
        word: int,
        address: int,
        ignored: Optional[IgnoredSymbolLog] = None,
    ) -> Classification:
        """Classify *word* found at *address*.

        Args:
            word: The word's numeric value.
            address: Address the word was read from.
            ignored: Accumulator for discarded zero-size symbol matches.
        """
        symbol = self.symbols.find(word)
        if symbol is not None and symbol.size == 0:
            if not symbol_contains(symbol, word, self.max_unbounded_span):
                if ignored is not None:
                    ignored.record(symbol, word)
                symbol = None

        if symbol is not None:
            return SymbolRef(
                symbol=symbol,
                offset=word - symbol.address,
                category=symbol_category(symbol, self.sections),
            )

        if abs(word - address) < self.stack_local_threshold:
            return StackLocal(offset=word - address)

        return Raw(value=word)
