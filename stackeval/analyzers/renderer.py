"""
Dump Renderer
==============

Walks a :class:`MemoryDump` word by word, classifies every word and
produces either

* a flat annotated listing, grouped into display rows of 16 bytes
  (two 64-bit words or four 32-bit words per row), or
* a trace: the same per-word events plus a linear history of stack frames
  reconstructed from symbol references, with runs of sentinel-filled
  ("blank") stack collapsed into start/length reports.

Both walks accept an optional ``[lower, upper)`` address window which is
snapped outward to the row alignment before use.  Neither walk can fail:
an empty window simply yields no output.
"""

from __future__ import annotations

from typing import Iterable, Optional

from shared.logger import EvalLogger

from stackeval.analyzers.classifier import IgnoredSymbolLog, WordClassifier
from stackeval.core.models import (
    AnnotatedRow,
    AnnotationResult,
    BlankRun,
    Category,
    Classification,
    FrameWord,
    MemoryDump,
    RenderEvent,
    StackFrame,
    StackLocal,
    SymbolRef,
    TraceResult,
    WordKind,
)

# Fill patterns written to unused stack by common RTOS/firmware builds.
SENTINEL_VALUES: tuple[int, ...] = (0xEEEEEEEE, 0xDEADBEEF)

ROW_BYTES: int = 16


def snap_window(
    lower: Optional[int],
    upper: Optional[int],
    alignment: int = ROW_BYTES,
) -> tuple[Optional[int], Optional[int]]:
    """Round *lower* down and *upper* up to a multiple of *alignment*."""
    if lower is not None:
        lower -= lower % alignment
    if upper is not None and upper % alignment:
        upper += alignment - upper % alignment
    return lower, upper


def words_per_row(word_width: int) -> int:
    return max(ROW_BYTES // word_width, 1)


def _in_window(address: int, lower: Optional[int], upper: Optional[int]) -> bool:
    if lower is not None and address < lower:
        return False
    return upper is None or address < upper


def render_word(
    address: int,
    word: int,
    classification: Classification,
    word_width: int,
) -> RenderEvent:
    """Build the display event for one classified word."""
    hex_width = word_width * 2

    if isinstance(classification, SymbolRef):
        symbol = classification.symbol
        return RenderEvent(
            address=address,
            value=word,
            text=symbol.name[:hex_width].rjust(hex_width),
            kind=WordKind.SYMBOL,
            category=classification.category,
            detail=(
                f"{symbol.name}{{0x{symbol.address:x} + "
                f"0x{classification.offset:x} = 0x{word:x}}}"
            ),
            classification=classification,
        )

    if isinstance(classification, StackLocal):
        return RenderEvent(
            address=address,
            value=word,
            text=f"stk{classification.sign}{classification.distance:0{hex_width - 5}x}h",
            kind=WordKind.STACK_LOCAL,
            category=Category.LOCAL_POINTER,
            classification=classification,
        )

    return RenderEvent(
        address=address,
        value=word,
        text=f"{word:0{hex_width}x}",
        kind=WordKind.RAW,
        category=Category.VALUE,
        classification=classification,
    )


def render_bytes(address: int, data: bytes) -> RenderEvent:
    """Build the display event for a fragment shorter than a word."""
    return RenderEvent(
        address=address,
        text=" ".join(f"{b:02x}" for b in data),
        kind=WordKind.BYTES,
        category=Category.BYTES,
    )


class DumpRenderer:
    """Runs flat and trace walks over decoded dumps.

    Args:
        classifier: Classifier consulted for every word.
        sentinel_values: Blank-stack fill patterns, matched on the low 32 bits.
        alignment: Granularity the address window is snapped to.
        logger: Optional logger; a quiet one is created if omitted.
    """

    def __init__(
        self,
        classifier: WordClassifier,
        *,
        sentinel_values: Iterable[int] = SENTINEL_VALUES,
        alignment: int = ROW_BYTES,
        logger: EvalLogger | None = None,
    ) -> None:
        self.classifier = classifier
        self.sentinel_values = frozenset(v & 0xFFFFFFFF for v in sentinel_values)
        self.alignment = alignment
        self._logger = logger or EvalLogger("renderer", console_output=False)

    # ------------------------------------------------------------------ #
    #  Flat annotation walk
    # ------------------------------------------------------------------ #

    def annotate(
        self,
        dump: MemoryDump,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
    ) -> AnnotationResult:
        """Classify every word in the window into display rows."""
        lower, upper = snap_window(lower, upper, self.alignment)
        result = AnnotationResult(word_width=dump.word_width, lower=lower, upper=upper)
        ignored = IgnoredSymbolLog()
        per_row = words_per_row(dump.word_width)

        if dump.head_length and _in_window(dump.base_address, lower, upper):
            result.rows.append(AnnotatedRow(
                address=dump.base_address,
                events=[render_bytes(dump.base_address, dump.head_bytes)],
            ))

        row: Optional[AnnotatedRow] = None
        emitted = 0
        for address, word in dump.words():
            if upper is not None and address >= upper:
                break
            if not _in_window(address, lower, upper):
                continue

            if emitted % per_row == 0:
                row = AnnotatedRow(address=address)
                result.rows.append(row)

            classification = self.classifier.classify(word, address, ignored)
            event = render_word(address, word, classification, dump.word_width)
            row.events.append(event)
            if event.detail is not None:
                row.details.append(event.detail)
            emitted += 1

        tail = dump.tail_bytes
        if tail:
            tail_address = dump.end_address - len(tail)
            if _in_window(tail_address, lower, upper):
                result.rows.append(AnnotatedRow(
                    address=tail_address,
                    events=[render_bytes(tail_address, tail)],
                ))

        result.ignored_symbols = ignored.entries()
        self._logger.debug(
            "Annotated %d words in %d rows, %d symbols ignored",
            emitted, len(result.rows), len(ignored),
        )
        return result

    # ------------------------------------------------------------------ #
    #  Trace walk
    # ------------------------------------------------------------------ #

    def is_sentinel(self, word: int) -> bool:
        return (word & 0xFFFFFFFF) in self.sentinel_values

    def trace(
        self,
        dump: MemoryDump,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
    ) -> TraceResult:
        """Classify every word and reconstruct a linear frame history.

        A symbol reference opens a new frame; stack-local and raw words
        are appended to the most recently opened frame.  Consecutive
        sentinel words are collapsed into a :class:`BlankRun`.
        """
        lower, upper = snap_window(lower, upper, self.alignment)
        result = TraceResult(word_width=dump.word_width, lower=lower, upper=upper)
        ignored = IgnoredSymbolLog()
        run: Optional[BlankRun] = None
        walked_end: Optional[int] = None

        for address, word in dump.words():
            if upper is not None and address >= upper:
                break
            if not _in_window(address, lower, upper):
                continue
            walked_end = address + dump.word_width

            if self.is_sentinel(word):
                if run is None:
                    run = BlankRun(start=address, ended=False)
                continue
            if run is not None:
                run.length = address - run.start
                run.ended = True
                result.blank_runs.append(run)
                run = None

            classification = self.classifier.classify(word, address, ignored)
            result.events.append(
                render_word(address, word, classification, dump.word_width)
            )

            if isinstance(classification, SymbolRef):
                result.frames.append(StackFrame(
                    address=address,
                    caller=classification.symbol,
                    offset=classification.offset,
                ))
            elif result.frames:
                result.frames[-1].words.append(FrameWord(
                    address=address,
                    value=word,
                    is_stack_relative=isinstance(classification, StackLocal),
                    offset=(
                        classification.offset
                        if isinstance(classification, StackLocal)
                        else None
                    ),
                ))

        if run is not None:
            run.length = (walked_end or run.start) - run.start
            result.blank_runs.append(run)
            self._logger.debug("Blank stack starting at 0x%x never ended", run.start)

        result.ignored_symbols = ignored.entries()
        self._logger.debug(
            "Traced %d words into %d frames, %d blank runs",
            len(result.events), len(result.frames), len(result.blank_runs),
        )
        return result
