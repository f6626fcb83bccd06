"""
stackeval Console Interface
============================

Rich-powered console abstraction shared by every stackeval command.

The class wraps :class:`rich.console.Console` and adds helpers for section
headers, severity-tagged messages and tables with consistent styling.
Recording can be enabled so a finished run can be exported as HTML.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

_EVAL_THEME = Theme(
    {
        "eval.section": "bold bright_magenta",
        "eval.success": "bold green",
        "eval.warning": "bold yellow",
        "eval.error": "bold red",
        "eval.info": "bold bright_blue",
        "eval.dim": "dim white",
        "eval.address": "bright_white",
    }
)

# severity -> (tag printed before the message, theme style)
_SEVERITY_TAGS: dict[str, tuple[str, str]] = {
    "success": ("OK", "eval.success"),
    "warning": ("WARNING", "eval.warning"),
    "error": ("ERROR", "eval.error"),
    "info": ("INFO", "eval.info"),
}


class EvalConsole:
    """Unified console interface for stackeval output.

    Usage::

        con = EvalConsole(record=True)
        con.section("Symbol source")
        con.success("Dump loaded")
        html = con.export_html()

    Args:
        quiet:  Suppress all output (``--json`` mode and library use).
        record: Keep everything printed for :meth:`export_html`.
        color:  Emit ANSI colour; ``False`` yields plain text.
        width:  Fixed console width, ``None`` to auto-detect.
    """

    def __init__(
        self,
        *,
        quiet: bool = False,
        record: bool = False,
        color: bool = True,
        width: int | None = None,
    ) -> None:
        self._console = Console(
            theme=_EVAL_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
            no_color=not color,
            width=width,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    def section(self, title: str) -> None:
        self._console.rule(f"  {title}  ", style="eval.section", characters="─")

    # ------------------------------------------------------------------ #
    #  Severity-tagged messages
    # ------------------------------------------------------------------ #

    def _tagged(self, severity: str, message: str) -> None:
        tag, style = _SEVERITY_TAGS[severity]
        self._console.print(f"[{style}]{tag}:[/{style}] {message}")

    def success(self, message: str) -> None:
        self._tagged("success", message)

    def warning(self, message: str) -> None:
        self._tagged("warning", message)

    def error(self, message: str) -> None:
        self._tagged("error", message)

    def info(self, message: str) -> None:
        self._tagged("info", message)

    # ------------------------------------------------------------------ #
    #  Tables
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a Rich table; cells other than Rich ``Text`` are stringified.

        ``styles`` gives one Rich style per column, missing entries are
        unstyled.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        column_styles = list(styles or [])
        column_styles += [""] * (len(columns) - len(column_styles))
        for name, style in zip(columns, column_styles):
            tbl.add_column(name, style=style)
        for row in rows:
            tbl.add_row(*(cell if isinstance(cell, Text) else str(cell) for cell in row))
        self._console.print(tbl)

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Proxy to :meth:`rich.console.Console.print`."""
        self._console.print(*args, **kwargs)

    def export_html(self) -> str:
        """Recorded output as a standalone HTML page (needs ``record=True``)."""
        return self._console.export_html()
