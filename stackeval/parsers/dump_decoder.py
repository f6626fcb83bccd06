"""
Dump Decoder
=============

Turns the text of a memory dump into a :class:`MemoryDump`.

The decoder walks the input line by line with a pluggable
:class:`~stackeval.parsers.grammars.DumpGrammar`.  Every data line must
start exactly where the previous one ended; gaps or overlaps abort the
load with an :class:`AddressContinuityError` naming the line and both
addresses.  Lines the grammar does not recognise are skipped.

Hex tokens are converted by width: 1-2 digits make one byte, 3-4 digits a
16-bit word, 5-8 digits a 32-bit word and 9-16 digits a 64-bit word, each
packed in the configured byte order.  Only the last token of a line may
be narrower than the others (a partial trailing word).

Known limitation: a line whose *first* word is partial is taken as a
complete short word, so if the following line also starts misaligned the
expected next address drifts from the device address and the load fails
on continuity.
"""

from __future__ import annotations

import re
import struct
from pathlib import Path
from typing import Iterable, Optional

from shared.logger import EvalLogger

from stackeval.core.errors import (
    AddressContinuityError,
    EncodingError,
    FormatError,
    TokenWidthError,
)
from stackeval.core.models import ByteOrder, DecodeStats, MemoryDump
from stackeval.parsers.grammars import DumpGrammar, get_grammar

# (maximum hex digits, bytes produced)
_TOKEN_SIZES: tuple[tuple[int, int], ...] = ((2, 1), (4, 2), (8, 4), (16, 8))
_STRUCT_CODES: dict[int, str] = {1: "B", 2: "H", 4: "I", 8: "Q"}
_HEX_TOKEN = re.compile(r"[0-9A-Fa-f]+")


def token_byte_size(token: str) -> int:
    """Number of bytes a hex token of this width decodes to."""
    for max_digits, size in _TOKEN_SIZES:
        if len(token) <= max_digits:
            return size
    raise TokenWidthError(f"oversize word {token!r}")


def convert_tokens(text: str, byte_order: ByteOrder) -> bytes:
    """Decode whitespace-separated hex tokens into bytes.

    Raises:
        TokenWidthError: Tokens before the last differ in width, or a
            token is wider than 16 digits.
        EncodingError: A token is not a hex number.
    """
    tokens = text.split()
    if not tokens:
        return b""

    width = len(tokens[0])
    out = bytearray()
    for i, token in enumerate(tokens):
        if len(token) != width and i != len(tokens) - 1:
            raise TokenWidthError(
                f"inconsistent word size: {token!r} is not {width} digits"
            )
        size = token_byte_size(token)
        if not _HEX_TOKEN.fullmatch(token):
            raise EncodingError(f"invalid hex token {token!r}")
        out += struct.pack(
            f"{byte_order.struct_prefix}{_STRUCT_CODES[size]}", int(token, 16)
        )
    return bytes(out)


def encode_tokens(data: bytes, token_bytes: int, byte_order: ByteOrder) -> list[str]:
    """Render *data* as hex tokens of *token_bytes* bytes each.

    A trailing remainder shorter than one token is split into the widest
    tokens that fit, mirroring how :func:`convert_tokens` reads them.
    """
    tokens: list[str] = []
    pos = 0
    while pos < len(data):
        size = token_bytes
        while pos + size > len(data):
            size //= 2
        value = int.from_bytes(data[pos:pos + size], byte_order.value)
        tokens.append(f"{value:0{size * 2}x}")
        pos += size
    return tokens


def _preview(data: bytes) -> str:
    return "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in data)


def format_dump(
    dump: MemoryDump,
    grammar: DumpGrammar | str = "standard",
    *,
    token_bytes: Optional[int] = None,
    bytes_per_line: int = 16,
) -> list[str]:
    """Print *dump* back as dump text in *grammar*'s dialect.

    Args:
        dump: The dump to print.
        grammar: Grammar instance or registered name.
        token_bytes: Bytes per token; defaults to the dump's word width.
        bytes_per_line: Bytes per data line.
    """
    if isinstance(grammar, str):
        grammar = get_grammar(grammar)
    token_bytes = token_bytes or dump.word_width

    lines: list[str] = []
    for pos in range(0, len(dump.data), bytes_per_line):
        chunk = dump.data[pos:pos + bytes_per_line]
        lines.append(grammar.format_line(
            dump.base_address + pos,
            encode_tokens(chunk, token_bytes, dump.byte_order),
            _preview(chunk),
        ))
    return lines


class DumpDecoder:
    """Decodes dump text into a single contiguous :class:`MemoryDump`.

    Usage::

        decoder = DumpDecoder("standard", word_width=4, byte_order=ByteOrder.BIG)
        dump = decoder.decode_file("stack.dump")
        print(decoder.stats.data_lines)

    Args:
        grammar: Grammar instance or registered name.
        word_width: Machine word size of the dumped target (4 or 8).
        byte_order: Byte order of the dumped target.
        verify_round_trip: Re-render each line's tokens from the decoded
            bytes and log a warning if they differ.
        logger: Optional logger; a quiet one is created if omitted.
    """

    def __init__(
        self,
        grammar: DumpGrammar | str = "standard",
        *,
        word_width: int = 4,
        byte_order: ByteOrder | str = ByteOrder.BIG,
        verify_round_trip: bool = True,
        logger: EvalLogger | None = None,
    ) -> None:
        if word_width not in (4, 8):
            raise ValueError(f"word_width must be 4 or 8, got {word_width}")
        self.grammar = get_grammar(grammar) if isinstance(grammar, str) else grammar
        self.word_width = word_width
        self.byte_order = ByteOrder(byte_order)
        self.verify_round_trip = verify_round_trip
        self.stats = DecodeStats()
        self._logger = logger or EvalLogger("decoder", console_output=False)

    def decode_file(self, path: str | Path) -> MemoryDump:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            return self.decode(fh)

    def decode_text(self, text: str) -> MemoryDump:
        return self.decode(text.splitlines())

    def decode(self, lines: Iterable[str]) -> MemoryDump:
        """Decode an ordered sequence of dump lines.

        Raises:
            AddressContinuityError: A line does not continue the previous one.
            TokenWidthError: Inconsistent or oversize hex tokens.
            EncodingError: A token is not hex.
        """
        self.stats = DecodeStats()
        start: Optional[int] = None
        next_address = 0
        absolute = False
        buf = bytearray()

        for line_number, raw_line in enumerate(lines, start=1):
            line = raw_line.rstrip("\r\n")
            self.stats.lines += 1

            offset = self.grammar.match_absolute_offset(line)
            if offset is not None:
                self.stats.absolute_lines += 1
                if start is None:
                    start = next_address = offset
                    absolute = True
                elif offset != next_address:
                    raise AddressContinuityError(
                        "unexpected base address",
                        line_number=line_number,
                        expected=next_address,
                        actual=offset,
                        line=line,
                    )
                continue

            data_line = self.grammar.match_data_line(line)
            if data_line is None:
                self.stats.skipped_lines += 1
                continue
            self.stats.data_lines += 1

            if start is None:
                # No base seen yet: take this line's address as absolute.
                start = next_address = data_line.offset
            line_address = start + data_line.offset if absolute else data_line.offset
            if line_address != next_address:
                raise AddressContinuityError(
                    "unexpected line address",
                    line_number=line_number,
                    expected=next_address,
                    actual=line_address,
                    line=line,
                )

            try:
                chunk = convert_tokens(data_line.text, self.byte_order)
            except FormatError as exc:
                raise exc.at_line(
                    line_number, line, expected=next_address, actual=line_address,
                ) from None

            if self.verify_round_trip and not self._round_trips(data_line.text, chunk):
                self.stats.mismatched_lines += 1
                self._logger.warning(
                    "Line %d did not read back identically: %r", line_number, line
                )

            buf += chunk
            next_address += len(chunk)

        if start is None:
            self._logger.warning("No data lines recognised by the %s grammar", self.grammar.name)
            start = 0

        self._logger.debug(
            "Decoded %d bytes at 0x%x from %d data lines (%d skipped)",
            len(buf), start, self.stats.data_lines, self.stats.skipped_lines,
        )
        return MemoryDump(
            base_address=start,
            data=bytes(buf),
            word_width=self.word_width,
            byte_order=self.byte_order,
        )

    def _round_trips(self, text: str, chunk: bytes) -> bool:
        """Print *chunk* back as single-spaced tokens of the line's width.

        The result must equal the token region of the input.  Odd-width
        tokens such as ``"1"`` fail, as does preview text that the grammar
        read as one more token.
        """
        tokens = text.split()
        if not tokens:
            return not chunk
        rebuilt = encode_tokens(chunk, token_byte_size(tokens[0]), self.byte_order)
        return " ".join(rebuilt) == text.strip().lower()
