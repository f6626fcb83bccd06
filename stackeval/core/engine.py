"""
stackeval Engine
=================

Orchestrates one evaluation run:

    1. Read the ELF symbol source: architecture, section flags, symbols
    2. Filter symbols by type and name into a :class:`SymbolTable`
    3. Decode the dump text with the configured grammar, word width and
       byte order (the binary's values unless overridden)
    4. Walk the dump in flat or trace mode

Every threshold comes from :class:`~shared.config.StackEvalConfig`; the
engine itself holds only the loaded binary and its symbol table.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from shared.config import StackEvalConfig
from shared.logger import EvalLogger

from stackeval.analyzers.classifier import WordClassifier
from stackeval.analyzers.renderer import DumpRenderer
from stackeval.analyzers.symbol_table import SymbolTable
from stackeval.core.models import (
    AnnotationResult,
    ArchInfo,
    ByteOrder,
    DecodeStats,
    LoadedBinary,
    MemoryDump,
    Symbol,
    SymbolLoadStats,
    TraceResult,
)
from stackeval.parsers.dump_decoder import DumpDecoder
from stackeval.parsers.elf_parser import ELFParser, RawSymbol

# Symbol types that never describe an addressable object.
_SILENT_TYPES: frozenset[str] = frozenset({"FILE", "NOTYPE", "SECTION"})


class StackEvalEngine:
    """Loads a binary and a dump and runs annotation walks over them.

    Usage::

        engine = StackEvalEngine(config)
        binary = engine.load_binary("vxWorks")
        dump = engine.load_dump("stack.txt")
        result = engine.annotate(dump, 0x1549000, 0x154a000)
    """

    def __init__(
        self,
        config: StackEvalConfig | None = None,
        logger: EvalLogger | None = None,
    ) -> None:
        self._config: StackEvalConfig = config or StackEvalConfig()
        self._logger: EvalLogger = logger or EvalLogger("engine", console_output=False)
        self.binary: Optional[LoadedBinary] = None
        self.symbols: SymbolTable = SymbolTable()
        self.decode_stats: DecodeStats = DecodeStats()

    @property
    def config(self) -> StackEvalConfig:
        return self._config

    # ------------------------------------------------------------------ #
    #  Binary / symbols
    # ------------------------------------------------------------------ #

    def load_binary(self, path: str | Path) -> LoadedBinary:
        """Parse *path* and index its accepted symbols.

        Raises:
            BinaryFormatError: *path* is unreadable or not an ELF image.
        """
        with self._logger.operation("load_binary"), self._logger.timed(f"load {path}"):
            parser = ELFParser.from_file(path)
            parser.parse()
            arch = parser.arch()
            sections = parser.sections()
            symbols, stats = self.filter_symbols(parser.raw_symbols())

        self.symbols = SymbolTable(symbols)
        self.binary = LoadedBinary(path=path, arch=arch, sections=sections, stats=stats)
        self._logger.info(
            "Loaded %d symbols from %s (%s, %d-bit, %s endian)",
            stats.loaded, path, arch.machine, arch.word_width * 8, arch.byte_order.value,
        )
        for sym_type, seen in sorted(stats.seen_by_type.items()):
            self._logger.debug(
                "Symbol type %s: %d seen, %d loaded",
                sym_type, seen, stats.loaded_by_type.get(sym_type, 0),
            )
        return self.binary

    def filter_symbols(self, raw: list[RawSymbol]) -> tuple[list[Symbol], SymbolLoadStats]:
        """Apply the type and name policy to raw symbol table entries."""
        policy = self._config.symbols
        kinds = {k.upper() for k in policy.kinds}
        exclude_names = set(policy.exclude_names)
        prefixes = tuple(policy.exclude_prefixes)

        stats = SymbolLoadStats()
        accepted: list[Symbol] = []
        for entry in raw:
            stats.seen_by_type[entry.type] = stats.seen_by_type.get(entry.type, 0) + 1

            if entry.type not in kinds:
                if entry.type not in _SILENT_TYPES:
                    self._logger.debug(
                        "Ignoring symbol %s section %d type %s",
                        entry.name, entry.section_index, entry.type,
                    )
                continue
            if entry.name in exclude_names or (prefixes and entry.name.startswith(prefixes)):
                stats.excluded.append(entry.name)
                continue

            accepted.append(Symbol(
                name=entry.name,
                address=entry.value,
                size=entry.size,
                section_index=entry.section_index,
            ))
            stats.loaded_by_type[entry.type] = stats.loaded_by_type.get(entry.type, 0) + 1
            stats.loaded_by_section[entry.section_index] = (
                stats.loaded_by_section.get(entry.section_index, 0) + 1
            )
        return accepted, stats

    def lookup(self, address: int) -> Optional[Symbol]:
        """Symbol containing *address* under the two-tier policy."""
        return self.symbols.lookup(
            address, self._config.annotate.max_unbounded_symbol_span
        )

    # ------------------------------------------------------------------ #
    #  Dump decoding
    # ------------------------------------------------------------------ #

    def decoder(self, arch: ArchInfo | None = None) -> DumpDecoder:
        """Build a decoder from config overrides, else *arch*, else defaults."""
        arch = arch or (self.binary.arch if self.binary else ArchInfo())
        settings = self._config.decoder
        return DumpDecoder(
            settings.grammar,
            word_width=settings.word_width or arch.word_width,
            byte_order=ByteOrder(settings.byte_order) if settings.byte_order else arch.byte_order,
            verify_round_trip=settings.verify_round_trip,
            logger=self._logger.child("decoder"),
        )

    def load_dump(self, path: str | Path, arch: ArchInfo | None = None) -> MemoryDump:
        """Decode the dump file at *path*.

        Raises:
            DumpDecodeError: The dump text is malformed.
        """
        decoder = self.decoder(arch)
        with self._logger.operation("load_dump"), self._logger.timed(f"decode {path}"):
            dump = decoder.decode_file(path)
        self.decode_stats = decoder.stats
        self._logger.info(
            "Decoded %d bytes at 0x%x from %s (%d data lines, %d skipped)",
            dump.size, dump.base_address, path,
            decoder.stats.data_lines, decoder.stats.skipped_lines,
        )
        return dump

    # ------------------------------------------------------------------ #
    #  Walks
    # ------------------------------------------------------------------ #

    def renderer(self) -> DumpRenderer:
        settings = self._config.annotate
        classifier = WordClassifier(
            self.symbols,
            self.binary.sections if self.binary else (),
            max_unbounded_span=settings.max_unbounded_symbol_span,
            stack_local_threshold=settings.stack_local_threshold,
        )
        return DumpRenderer(
            classifier,
            sentinel_values=settings.sentinel_values,
            alignment=settings.window_alignment,
            logger=self._logger.child("renderer"),
        )

    def annotate(
        self,
        dump: MemoryDump,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
    ) -> AnnotationResult:
        with self._logger.operation("annotate"):
            return self.renderer().annotate(dump, lower, upper)

    def trace(
        self,
        dump: MemoryDump,
        lower: Optional[int] = None,
        upper: Optional[int] = None,
    ) -> TraceResult:
        with self._logger.operation("trace"):
            return self.renderer().trace(dump, lower, upper)
