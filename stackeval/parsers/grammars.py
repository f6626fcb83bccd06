"""
Dump Text Grammars
===================

Each debugger or monitor prints memory in its own hex-dump dialect.  A
:class:`DumpGrammar` recognises the two kinds of line the decoder cares
about and can print a line back in the same dialect:

* *absolute-offset* lines restate a base address, e.g.
  ``Physaddr:10867C000``; data lines that follow carry offsets relative
  to the first one seen.
* *data* lines carry an address field, a colon, whitespace-separated hex
  tokens of one width, and an optional printable preview.

Supported dialects:

``standard``
    ``0x01549090:  01020304 05060708 a1a2a3a4 a5a6a7a8   *................*``
    ``0000000000000080: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  |........ ........|``
    plus ``Physaddr:<hex>`` absolute-offset lines.
``vxworks``
    Output of the VxWorks shell ``d`` command: an eight digit ``0x``
    address with the colon in column 10 and a ``*``-delimited preview.
``xxd``
    ``00000080: 0001 0203 0405 0607 0809 0a0b 0c0d 0e0f  ................``
    where the undelimited preview follows two or more spaces.
"""

from __future__ import annotations

import abc
import re
from typing import NamedTuple, Optional, Sequence


class DataLine(NamedTuple):
    """A recognised data line: its address field and its raw token text."""
    offset: int
    text: str


class DumpGrammar(abc.ABC):
    """Recogniser and printer for one hex-dump dialect."""

    name: str = ""
    description: str = ""

    def match_absolute_offset(self, line: str) -> Optional[int]:
        """Return the declared base address if *line* restates one."""
        return None

    @abc.abstractmethod
    def match_data_line(self, line: str) -> Optional[DataLine]:
        """Return the address field and token text if *line* carries data."""

    @abc.abstractmethod
    def format_line(self, address: int, tokens: Sequence[str], preview: str = "") -> str:
        """Print one data line in this dialect."""

    def format_absolute_offset(self, address: int) -> Optional[str]:
        """Print an absolute-offset line, or ``None`` if the dialect has none."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class StandardGrammar(DumpGrammar):
    """Address field with or without ``0x``, ``*`` or ``|`` delimited preview."""

    name = "standard"
    description = "0xADDR: or ADDR: data lines, *...* or |...| preview, Physaddr: lines"

    _ABSOLUTE = re.compile(r"^\s*Physaddr:\s*(?:0x)?(?P<addr>[0-9A-Fa-f]+)\s*$")
    _DATA = re.compile(
        r"^\s*(?:0x)?(?P<addr>[0-9A-Fa-f]+):"
        r"(?P<data>(?:[ \t]+[0-9A-Fa-f]+)+)"
        r"(?:[ \t]+[*|].*)?\s*$"
    )

    def __init__(self, address_digits: int = 8) -> None:
        self.address_digits = address_digits

    def match_absolute_offset(self, line: str) -> Optional[int]:
        m = self._ABSOLUTE.match(line)
        return int(m.group("addr"), 16) if m else None

    def match_data_line(self, line: str) -> Optional[DataLine]:
        m = self._DATA.match(line)
        if m is None:
            return None
        return DataLine(int(m.group("addr"), 16), m.group("data"))

    def format_line(self, address: int, tokens: Sequence[str], preview: str = "") -> str:
        return f"0x{address:0{self.address_digits}x}:  {' '.join(tokens)}   *{preview}*"

    def format_absolute_offset(self, address: int) -> Optional[str]:
        return f"Physaddr:{address:X}"


class VxWorksGrammar(DumpGrammar):
    """VxWorks shell ``d`` output: ``0x`` plus eight digits, colon in column 10."""

    name = "vxworks"
    description = "0xXXXXXXXX:  tokens   *preview* (VxWorks d command)"

    _DATA = re.compile(
        r"^0x(?P<addr>[0-9A-Fa-f]{8}):"
        r"(?P<data>(?:[ \t]+[0-9A-Fa-f]+)+)"
        r"(?:[ \t]+\*.*)?\s*$"
    )

    def match_data_line(self, line: str) -> Optional[DataLine]:
        m = self._DATA.match(line)
        if m is None:
            return None
        return DataLine(int(m.group("addr"), 16), m.group("data"))

    def format_line(self, address: int, tokens: Sequence[str], preview: str = "") -> str:
        return f"0x{address:08x}:  {' '.join(tokens)}   *{preview}*"


class XxdGrammar(DumpGrammar):
    """``xxd`` output: single-space tokens, preview after two or more spaces."""

    name = "xxd"
    description = "ADDR: tokens  preview (xxd, undelimited preview)"

    _DATA = re.compile(
        r"^(?P<addr>[0-9A-Fa-f]+): "
        r"(?P<data>[0-9A-Fa-f]+(?: [0-9A-Fa-f]+)*)"
        r"(?: {2,}.*)?$"
    )

    def match_data_line(self, line: str) -> Optional[DataLine]:
        m = self._DATA.match(line.rstrip("\r\n"))
        if m is None:
            return None
        return DataLine(int(m.group("addr"), 16), m.group("data"))

    def format_line(self, address: int, tokens: Sequence[str], preview: str = "") -> str:
        return f"{address:08x}: {' '.join(tokens)}  {preview}"


GRAMMARS: dict[str, type[DumpGrammar]] = {
    StandardGrammar.name: StandardGrammar,
    VxWorksGrammar.name: VxWorksGrammar,
    XxdGrammar.name: XxdGrammar,
}


def get_grammar(name: str) -> DumpGrammar:
    """Instantiate the grammar registered under *name*.

    Raises:
        KeyError: If no grammar has that name.
    """
    try:
        return GRAMMARS[name.lower()]()
    except KeyError:
        raise KeyError(
            f"Unknown dump grammar {name!r}; choose from {', '.join(sorted(GRAMMARS))}"
        ) from None
