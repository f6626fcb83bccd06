"""
stackeval CLI
==============

Click-based command-line interface for the stack evaluator.

Commands:
    stackeval dump BINARY DUMPFILE [LOWER UPPER]   - Annotated flat listing
    stackeval trace BINARY DUMPFILE [LOWER UPPER]  - Frame reconstruction
    stackeval lookup BINARY ADDRESS                - Symbol containing ADDRESS
    stackeval loadonly BINARY [DUMPFILE]           - Load and report statistics
    stackeval symbols BINARY [-n N]                - Lowest-addressed symbols
    stackeval legend                               - Category colour legend

Global Options:
    --config, -c      TOML configuration file (default: stackeval.toml)
    --verbose, -v     Enable debug logging
    --grammar, -g     Dump text dialect (standard, vxworks, xxd)
    --word-width      Override the binary's word width (4 or 8)
    --byte-order      Override the binary's byte order (big or little)
    --json            Print the run as JSON on stdout
    --output, -o      Also write a report (.json or .html)
    --no-legend       Omit the legend line before listings

Limits are parsed with base auto-detection, so ``0x1549000`` and
``22319104`` are the same address.  Either both limits are given or
neither.

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import click

from shared.config import StackEvalConfig
from shared.console import EvalConsole
from shared.logger import EvalLogger

from stackeval import __version__
from stackeval.analyzers.classifier import legend
from stackeval.core.engine import StackEvalEngine
from stackeval.core.errors import StackEvalError
from stackeval.core.models import AnnotationResult, MemoryDump, TraceResult
from stackeval.output.console import StackEvalConsoleOutput
from stackeval.output.report import StackEvalReportGenerator
from stackeval.parsers.grammars import GRAMMARS


# ===================================================================== #
#  Parameter types / helpers
# ===================================================================== #

class AddressType(click.ParamType):
    """Integer address with ``0x`` / ``0o`` / ``0b`` prefix detection."""

    name = "address"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            address = int(value, 0)
        except ValueError:
            self.fail(f"{value!r} is not a valid address", param, ctx)
        if address < 0:
            self.fail(f"{value!r} is negative", param, ctx)
        return address


ADDRESS = AddressType()


def _window(lower: Optional[int], upper: Optional[int]) -> None:
    if (lower is None) != (upper is None):
        raise click.UsageError("LOWER and UPPER must be given together")


@contextmanager
def _handle_errors(ctx: click.Context) -> Iterator[None]:
    """Report stackeval errors on the console and exit non-zero."""
    try:
        yield
    except StackEvalError as exc:
        if ctx.obj["json"]:
            click.echo(f"ERROR: {exc}", err=True)
        else:
            ctx.obj["console"].error(str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("Interrupted by user.", err=True)
        sys.exit(130)


def _emit_report(
    ctx: click.Context,
    dump: Optional[MemoryDump] = None,
    result: Union[AnnotationResult, TraceResult, None] = None,
) -> None:
    """Print the JSON report and/or write the ``--output`` file."""
    engine: StackEvalEngine = ctx.obj["engine"]
    reporter: StackEvalReportGenerator = ctx.obj["reporter"]
    console: EvalConsole = ctx.obj["console"]
    output_file: Optional[str] = ctx.obj["output_file"]

    report = reporter.build(
        engine.binary,
        dump,
        engine.decode_stats if dump is not None else None,
        result,
    )
    if ctx.obj["json"]:
        click.echo(json.dumps(report, indent=2, default=str))

    if output_file:
        if Path(output_file).suffix.lower() == ".html":
            path = reporter.generate_html(console, output_file)
            console.success(f"HTML report saved: {path}")
        else:
            path = reporter.generate_json(report, output_file)
            if not ctx.obj["json"]:
                console.success(f"JSON report saved: {path}")


# ===================================================================== #
#  CLI Group
# ===================================================================== #

@click.group()
@click.version_option(__version__, prog_name="stackeval")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to a stackeval configuration file (TOML).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
@click.option(
    "--grammar", "-g",
    type=click.Choice(sorted(GRAMMARS), case_sensitive=False),
    default=None,
    help="Dump text dialect.  Default: from config (standard).",
)
@click.option(
    "--word-width",
    type=click.Choice(["4", "8"]),
    default=None,
    help="Word width in bytes.  Default: from the binary.",
)
@click.option(
    "--byte-order",
    type=click.Choice(["big", "little"], case_sensitive=False),
    default=None,
    help="Byte order.  Default: from the binary.",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output results as JSON to stdout.",
)
@click.option(
    "--output", "-o",
    "output_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Report file path (.json or .html).",
)
@click.option(
    "--no-legend",
    is_flag=True,
    default=False,
    help="Do not print the colour legend before listings.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[str],
    verbose: bool,
    grammar: Optional[str],
    word_width: Optional[str],
    byte_order: Optional[str],
    json_output: bool,
    output_file: Optional[str],
    no_legend: bool,
) -> None:
    """stackeval -- annotate memory dumps against an ELF symbol table.

    Every word of the dump is shown as a reference into a function or
    data object, a pointer into the surrounding stack, or a plain value.
    """
    ctx.ensure_object(dict)

    eval_config = StackEvalConfig.load(config)
    if grammar:
        eval_config.decoder.grammar = grammar.lower()
    if word_width:
        eval_config.decoder.word_width = int(word_width)
    if byte_order:
        eval_config.decoder.byte_order = byte_order.lower()

    logger = EvalLogger.from_config("cli", eval_config.global_settings, verbose=verbose)
    console = EvalConsole(
        quiet=json_output,
        record=bool(output_file and output_file.lower().endswith(".html")),
        color=eval_config.global_settings.color,
    )

    ctx.obj["config"] = eval_config
    ctx.obj["json"] = json_output
    ctx.obj["output_file"] = output_file
    ctx.obj["legend"] = not no_legend
    ctx.obj["logger"] = logger
    ctx.obj["console"] = console
    ctx.obj["engine"] = StackEvalEngine(eval_config, logger.child("engine"))
    ctx.obj["display"] = StackEvalConsoleOutput(console)
    ctx.obj["reporter"] = StackEvalReportGenerator()


# ===================================================================== #
#  Subcommands
# ===================================================================== #

@cli.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.argument("dumpfile", type=click.Path(exists=True, dir_okay=False))
@click.argument("lower", type=ADDRESS, required=False)
@click.argument("upper", type=ADDRESS, required=False)
@click.pass_context
def dump(
    ctx: click.Context,
    binary: str,
    dumpfile: str,
    lower: Optional[int],
    upper: Optional[int],
) -> None:
    """Annotate every word of DUMPFILE against the symbols of BINARY.

    LOWER and UPPER restrict the listing to [LOWER, UPPER), widened to
    whole 16-byte rows.
    """
    _window(lower, upper)
    engine: StackEvalEngine = ctx.obj["engine"]
    display: StackEvalConsoleOutput = ctx.obj["display"]

    with _handle_errors(ctx):
        engine.load_binary(binary)
        memory = engine.load_dump(dumpfile)
        result = engine.annotate(memory, lower, upper)

    if ctx.obj["legend"]:
        display.display_legend(legend(engine.config.annotate.stack_local_threshold))
    display.display_annotation(result)
    _emit_report(ctx, memory, result)


@cli.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.argument("dumpfile", type=click.Path(exists=True, dir_okay=False))
@click.argument("lower", type=ADDRESS, required=False)
@click.argument("upper", type=ADDRESS, required=False)
@click.pass_context
def trace(
    ctx: click.Context,
    binary: str,
    dumpfile: str,
    lower: Optional[int],
    upper: Optional[int],
) -> None:
    """Reconstruct a linear frame history from DUMPFILE.

    Each symbol reference opens a frame; the words that follow belong to
    it.  Runs of blank (sentinel-filled) stack are collapsed.
    """
    _window(lower, upper)
    engine: StackEvalEngine = ctx.obj["engine"]
    display: StackEvalConsoleOutput = ctx.obj["display"]

    with _handle_errors(ctx):
        engine.load_binary(binary)
        memory = engine.load_dump(dumpfile)
        result = engine.trace(memory, lower, upper)

    if ctx.obj["legend"]:
        display.display_legend(legend(engine.config.annotate.stack_local_threshold))
    display.display_trace(result)
    _emit_report(ctx, memory, result)


@cli.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.argument("address", type=ADDRESS)
@click.pass_context
def lookup(ctx: click.Context, binary: str, address: int) -> None:
    """Find the symbol of BINARY that contains ADDRESS."""
    engine: StackEvalEngine = ctx.obj["engine"]

    with _handle_errors(ctx):
        engine.load_binary(binary)
    symbol = engine.lookup(address)

    if ctx.obj["json"]:
        click.echo(json.dumps({
            "address": address,
            "symbol": symbol.model_dump(mode="json") if symbol else None,
            "offset": address - symbol.address if symbol else None,
        }, indent=2))
        return
    ctx.obj["display"].display_lookup(address, symbol)


@cli.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.argument("dumpfile", type=click.Path(exists=True, dir_okay=False), required=False)
@click.pass_context
def loadonly(ctx: click.Context, binary: str, dumpfile: Optional[str]) -> None:
    """Load BINARY (and DUMPFILE) and report statistics only."""
    engine: StackEvalEngine = ctx.obj["engine"]
    display: StackEvalConsoleOutput = ctx.obj["display"]
    memory: Optional[MemoryDump] = None

    with _handle_errors(ctx):
        loaded = engine.load_binary(binary)
        if dumpfile:
            memory = engine.load_dump(dumpfile)

    display.display_binary(loaded)
    if memory is not None:
        display.display_decode_stats(engine.decode_stats, memory.size, memory.base_address)
    _emit_report(ctx, memory)


@cli.command()
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--count", "-n",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Number of symbols to list.",
)
@click.pass_context
def symbols(ctx: click.Context, binary: str, count: int) -> None:
    """List the lowest-addressed symbols loaded from BINARY."""
    engine: StackEvalEngine = ctx.obj["engine"]

    with _handle_errors(ctx):
        loaded = engine.load_binary(binary)
    top = engine.symbols.top(count)

    if ctx.obj["json"]:
        click.echo(json.dumps([s.model_dump(mode="json") for s in top], indent=2))
        return
    ctx.obj["display"].display_symbols(top, loaded.arch.word_width)
    ctx.obj["console"].info(f"{len(engine.symbols)} symbols loaded")


@cli.command("legend")
@click.pass_context
def legend_cmd(ctx: click.Context) -> None:
    """Show what each colour in a listing means."""
    threshold = ctx.obj["config"].annotate.stack_local_threshold
    entries = legend(threshold)

    if ctx.obj["json"]:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return
    ctx.obj["display"].display_legend_table(entries)


# ===================================================================== #
#  Entry Point
# ===================================================================== #

def main() -> None:
    """Main entry point for the stackeval CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
