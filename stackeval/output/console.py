"""
stackeval Console Output
=========================

Rich-powered terminal display for annotation and trace results.  This is
the only place render categories are mapped to colours; the core emits
categories and a colour-free legend.

Uses the :class:`~shared.console.EvalConsole` abstraction for consistent
styling across commands.
"""

from __future__ import annotations

from typing import Sequence

from rich.text import Text

from shared.console import EvalConsole

from stackeval.core.models import (
    AnnotationResult,
    Category,
    DecodeStats,
    IgnoredSymbol,
    LegendEntry,
    LoadedBinary,
    RenderEvent,
    Symbol,
    TraceResult,
)


# ---------------------------------------------------------------------------
# Category colour map
# ---------------------------------------------------------------------------

CATEGORY_STYLES: dict[Category, str] = {
    Category.TEXT_ZERO_LENGTH: "red on yellow",
    Category.TEXT: "black on yellow",
    Category.DATA: "black on green",
    Category.BSS: "white on green",
    Category.UNKNOWN: "cyan on blue",
    Category.LOCAL_POINTER: "bold blue",
    Category.VALUE: "",
    Category.BYTES: "dim",
}


def _address(address: int, word_width: int) -> str:
    return f"{address:0{word_width * 2}x}"


class StackEvalConsoleOutput:
    """Formats stackeval results for terminal display.

    Args:
        console: Shared console; a fresh one is created if omitted.
    """

    def __init__(self, console: EvalConsole | None = None) -> None:
        self.console = console or EvalConsole()

    def styled(self, event: RenderEvent) -> Text:
        return Text(event.text, style=CATEGORY_STYLES.get(event.category, ""))

    # ------------------------------------------------------------------ #
    #  Binary / decode summaries
    # ------------------------------------------------------------------ #

    def display_binary(self, binary: LoadedBinary) -> None:
        self.console.section("Symbol source")
        arch = binary.arch
        self.console.info(
            f"{binary.path}: {arch.machine}, {arch.word_width * 8}-bit, "
            f"{arch.byte_order.value} endian, {len(binary.sections)} sections"
        )
        stats = binary.stats
        self.console.table(
            "Symbol types",
            ["Type", "Seen", "Loaded"],
            [
                (sym_type, seen, stats.loaded_by_type.get(sym_type, 0))
                for sym_type, seen in sorted(stats.seen_by_type.items())
            ],
            styles=["bright_white", "", "eval.success"],
        )

        by_section = []
        for index, count in sorted(stats.loaded_by_section.items()):
            name = binary.sections[index].name if 0 <= index < len(binary.sections) else ""
            by_section.append((index, name or "-", count))
        self.console.table(
            "Symbols per section",
            ["Index", "Section", "Symbols"],
            by_section,
            caption=f"{len(stats.excluded)} excluded by name" if stats.excluded else None,
        )

    def display_decode_stats(self, stats: DecodeStats, size: int, base: int) -> None:
        self.console.info(
            f"Decoded {size} bytes at 0x{base:x}: {stats.data_lines} data lines, "
            f"{stats.absolute_lines} base lines, {stats.skipped_lines} skipped"
        )
        if stats.mismatched_lines:
            self.console.warning(
                f"{stats.mismatched_lines} lines did not read back identically"
            )

    def display_symbols(self, symbols: Sequence[Symbol], word_width: int) -> None:
        self.console.table(
            "Symbols",
            ["Address", "Size", "Section", "Name"],
            [
                (_address(s.address, word_width), s.size or "?", s.section_index, s.name)
                for s in symbols
            ],
            styles=["eval.address", "", "", "bright_white"],
        )

    def display_lookup(self, address: int, symbol: Symbol | None) -> None:
        if symbol is None:
            self.console.warning(f"No symbol contains 0x{address:x}")
            return
        self.console.success(
            f"0x{address:x} is {symbol.name}+0x{address - symbol.address:x} "
            f"(@0x{symbol.address:x}, {symbol.size} bytes)"
        )

    # ------------------------------------------------------------------ #
    #  Legend
    # ------------------------------------------------------------------ #

    def display_legend(self, entries: Sequence[LegendEntry]) -> None:
        line = Text("Legend: ")
        for entry in entries:
            line.append(entry.label, style=CATEGORY_STYLES.get(entry.category, ""))
            line.append(" ")
        self.console.print(line)

    def display_legend_table(self, entries: Sequence[LegendEntry]) -> None:
        """One row per category: its coloured label and what it means."""
        self.console.table(
            "Legend",
            ["Label", "Meaning"],
            [
                (Text(e.label, style=CATEGORY_STYLES.get(e.category, "")), e.description)
                for e in entries
            ],
        )

    # ------------------------------------------------------------------ #
    #  Flat annotation
    # ------------------------------------------------------------------ #

    def display_annotation(self, result: AnnotationResult) -> None:
        for row in result.rows:
            line = Text(f"{_address(row.address, result.word_width)}: ", style="eval.address")
            for i, event in enumerate(row.events):
                if i:
                    line.append(" ")
                line.append_text(self.styled(event))
            if row.details:
                line.append("  ")
                line.append(" ".join(row.details))
            self.console.print(line, soft_wrap=True)
        self._display_ignored(result.ignored_symbols)

    # ------------------------------------------------------------------ #
    #  Trace
    # ------------------------------------------------------------------ #

    def display_trace(self, result: TraceResult) -> None:
        run_ends = {run.end: run for run in result.blank_runs if run.ended}

        for event in result.events:
            run = run_ends.get(event.address)
            if run is not None:
                self.console.print(Text(
                    f"Blank stack 0x{run.start:x}-0x{run.end:x} (0x{run.length:x} bytes)",
                    style="eval.dim",
                ))
            line = Text(f"{_address(event.address, result.word_width)}: ", style="eval.address")
            line.append_text(self.styled(event))
            if event.detail:
                line.append("  ")
                line.append(event.detail)
            self.console.print(line, soft_wrap=True)

        for message in result.anomalies:
            self.console.warning(message)

        if result.frames:
            self.console.table(
                "Frames",
                ["At", "Caller", "Offset", "Words", "Stack refs"],
                [
                    (
                        _address(frame.address, result.word_width),
                        frame.caller.name,
                        f"0x{frame.offset:x}",
                        len(frame.words),
                        sum(1 for w in frame.words if w.is_stack_relative),
                    )
                    for frame in result.frames
                ],
                styles=["eval.address", "bright_white", "", "", ""],
            )
        self._display_ignored(result.ignored_symbols)

    def _display_ignored(self, ignored: Sequence[IgnoredSymbol]) -> None:
        for entry in ignored:
            self.console.print(Text(entry.message, style="eval.dim"))
