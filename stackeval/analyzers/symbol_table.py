"""
Symbol Table
=============

Address-interval index over ELF function and object symbols.

Symbols are appended in any order; the first lookup after a mutation sorts
them by address (stable, so equal addresses keep insertion order) and
every lookup binary-searches the greatest symbol whose address is at or
below the query.

:meth:`SymbolTable.find` applies the *primitive* containment rule: a
symbol with a known size contains ``[address, address + size)``, and a
symbol of size 0 contains every address at or above its own.  That second
rule over-matches on purpose; :func:`symbol_contains` is the capped check
callers apply on top of it.
"""

from __future__ import annotations

import bisect
import threading
from operator import attrgetter
from typing import Iterable, Iterator, Optional

from stackeval.core.models import Symbol

# Trailing span credited to a zero-size symbol by the capped check.
MAX_UNBOUNDED_SYMBOL_SPAN: int = 0x10000


def symbol_contains(symbol: Symbol, address: int, max_unbounded_span: int) -> bool:
    """Capped containment: a zero-size symbol covers only *max_unbounded_span* bytes."""
    size = symbol.size or max_unbounded_span
    return 0 <= address - symbol.address < size


class SymbolTable:
    """Registry of symbols supporting nearest-below lookup.

    Mutation and the sort it triggers happen under one lock, so the table
    may be filled from several threads; it is only guaranteed consistent
    from the first query on.

    Usage::

        table = SymbolTable()
        table.add(Symbol(name="main", address=0x1000, size=0x40))
        table.find(0x1010)      # -> main
    """

    def __init__(self, symbols: Iterable[Symbol] = ()) -> None:
        self._lock = threading.Lock()
        self._symbols: list[Symbol] = list(symbols)
        self._addresses: list[int] = []
        self._sorted = not self._symbols

    def add(self, symbol: Symbol) -> None:
        """Append *symbol*; duplicate addresses are allowed."""
        with self._lock:
            self._symbols.append(symbol)
            self._sorted = False

    def extend(self, symbols: Iterable[Symbol]) -> None:
        with self._lock:
            self._symbols.extend(symbols)
            self._sorted = False

    def find(self, address: int) -> Optional[Symbol]:
        """Return the symbol containing *address* under the primitive rule.

        Among symbols sharing the nearest-below address the last one in
        sorted order is returned.
        """
        with self._lock:
            self._ensure_sorted()
            i = bisect.bisect_right(self._addresses, address)
            if i == 0:
                return None
            symbol = self._symbols[i - 1]

        if symbol.size == 0 or address < symbol.address + symbol.size:
            return symbol
        return None

    def lookup(
        self,
        address: int,
        max_unbounded_span: int = MAX_UNBOUNDED_SYMBOL_SPAN,
    ) -> Optional[Symbol]:
        """Two-tier lookup: :meth:`find`, then the capped containment check."""
        symbol = self.find(address)
        if symbol is not None and symbol_contains(symbol, address, max_unbounded_span):
            return symbol
        return None

    def _ensure_sorted(self) -> None:
        if not self._sorted:
            self._symbols.sort(key=attrgetter("address"))
            self._addresses = [s.address for s in self._symbols]
            self._sorted = True

    def sorted_symbols(self) -> list[Symbol]:
        """Snapshot of all symbols in ascending address order."""
        with self._lock:
            self._ensure_sorted()
            return list(self._symbols)

    def top(self, count: int = 5) -> list[Symbol]:
        """The *count* lowest-addressed symbols."""
        return self.sorted_symbols()[:count]

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self.sorted_symbols())

    def __str__(self) -> str:
        return "\n".join(str(s) for s in self.sorted_symbols())
