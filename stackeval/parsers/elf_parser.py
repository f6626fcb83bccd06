"""
ELF Symbol Source Parser
=========================

Reads the three things stack evaluation needs from an Executable and
Linkable Format image:

* the architecture: word width from the ELF class, byte order from
  ``EI_DATA`` and the machine name from ``e_machine``;
* the flags of every section, in section-header order, so that a symbol's
  section index can be mapped to executable / writable / allocated;
* the raw entries of the symbol table, ``.symtab`` when present and
  ``.dynsym`` for stripped images.

ELF32 and ELF64 are handled by one code path: every on-disk record is
described by a :class:`struct.Struct` chosen once from the ELF class and
byte order.  Nothing is relocated or resolved.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - Linux man page: elf(5).
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import NamedTuple

from stackeval.core.errors import BinaryFormatError
from stackeval.core.models import ArchInfo, ByteOrder, SectionFlags


ELF_MAGIC = b"\x7fELF"

_ELFCLASS64 = 2
_CLASS_WIDTH = {1: 4, 2: 8}
_DATA_ORDER = {1: ByteOrder.LITTLE, 2: ByteOrder.BIG}

_MACHINE_NAMES: dict[int, str] = {
    2: "SPARC",
    3: "x86",
    8: "MIPS",
    20: "PowerPC",
    21: "PowerPC64",
    40: "ARM",
    62: "x86_64",
    183: "AArch64",
    243: "RISC-V",
}

# sh_type values, in order of preference
_SYMBOL_TABLE_TYPES = (2, 11)  # SHT_SYMTAB, SHT_DYNSYM

_SHF_WRITE = 0x1
_SHF_ALLOC = 0x2
_SHF_EXECINSTR = 0x4

_SYMBOL_TYPE_NAMES = {0: "NOTYPE", 1: "OBJECT", 2: "FUNC", 3: "SECTION", 4: "FILE"}

# Record layouts after e_ident, keyed by ELF class.  Field order differs
# between the classes only for symbols.
_HEADER_FORMATS = {1: "HHIIIIIHHHHHH", 2: "HHIQQQIHHHHHH"}
_SECTION_FORMATS = {1: "IIIIIIIIII", 2: "IIQQQQIIQQ"}
_SYMBOL_FORMATS = {1: "IIIBBH", 2: "IBBHQQ"}


class RawSymbol(NamedTuple):
    """One unfiltered symbol table entry."""
    name: str
    value: int
    size: int
    type: str
    section_index: int


class _Section(NamedTuple):
    name_offset: int
    type: int
    flags: int
    offset: int
    size: int
    link: int
    entsize: int
    name: str = ""


class ELFParser:
    """Architecture, section and symbol reader for ELF images.

    Usage::

        parser = ELFParser.from_file("vxWorks")
        parser.parse()
        arch = parser.arch()
        sections = parser.sections()
        symbols = parser.raw_symbols()
    """

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._elf_class = 0
        self._order = ByteOrder.LITTLE
        self._machine = 0
        self._sections: list[_Section] = []
        self._symbols: list[RawSymbol] = []
        self._parsed = False

    @classmethod
    def from_file(cls, path: str | Path) -> ELFParser:
        try:
            return cls(Path(path).read_bytes())
        except OSError as exc:
            raise BinaryFormatError(f"cannot read {path}: {exc.strerror}") from exc

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def parse(self) -> None:
        """Read header, section table and symbols.

        Raises:
            BinaryFormatError: The data is not a well-formed ELF image.
        """
        ident = self._data[:16]
        if len(ident) < 16 or ident[:4] != ELF_MAGIC:
            raise BinaryFormatError("not an ELF image (bad magic)")
        if ident[4] not in _CLASS_WIDTH:
            raise BinaryFormatError(f"unsupported ELF class {ident[4]}")
        if ident[5] not in _DATA_ORDER:
            raise BinaryFormatError(f"unsupported ELF data encoding {ident[5]}")
        self._elf_class = ident[4]
        self._order = _DATA_ORDER[ident[5]]

        try:
            shoff, shentsize, shnum, shstrndx = self._read_header()
            self._sections = self._read_sections(shoff, shentsize, shnum, shstrndx)
            self._symbols = self._read_symbols()
        except (struct.error, IndexError) as exc:
            raise BinaryFormatError(f"truncated or corrupt ELF image: {exc}") from exc
        self._parsed = True

    def arch(self) -> ArchInfo:
        self._require_parsed()
        return ArchInfo(
            machine=_MACHINE_NAMES.get(self._machine, f"EM_{self._machine}"),
            word_width=_CLASS_WIDTH[self._elf_class],
            byte_order=self._order,
        )

    def sections(self) -> list[SectionFlags]:
        """Section flags in section-header order, so symbol indices apply."""
        self._require_parsed()
        return [
            SectionFlags(
                name=section.name,
                executable=bool(section.flags & _SHF_EXECINSTR),
                writable=bool(section.flags & _SHF_WRITE),
                allocated=bool(section.flags & _SHF_ALLOC),
            )
            for section in self._sections
        ]

    def raw_symbols(self) -> list[RawSymbol]:
        self._require_parsed()
        return list(self._symbols)

    def _require_parsed(self) -> None:
        if not self._parsed:
            raise RuntimeError("ELFParser.parse() has not been called")

    # ------------------------------------------------------------------ #
    #  Record readers
    # ------------------------------------------------------------------ #

    def _layout(self, formats: dict[int, str]) -> struct.Struct:
        return struct.Struct(self._order.struct_prefix + formats[self._elf_class])

    def _read_header(self) -> tuple[int, int, int, int]:
        fields = self._layout(_HEADER_FORMATS).unpack_from(self._data, 16)
        self._machine = fields[1]
        # e_shoff, e_shentsize, e_shnum, e_shstrndx
        return fields[5], fields[10], fields[11], fields[12]

    def _read_sections(
        self, shoff: int, shentsize: int, shnum: int, shstrndx: int,
    ) -> list[_Section]:
        if not shoff or not shnum:
            return []
        layout = self._layout(_SECTION_FORMATS)
        sections = []
        for index in range(shnum):
            (name_offset, sh_type, flags, _addr, offset, size,
             link, _info, _align, entsize) = layout.unpack_from(
                self._data, shoff + index * shentsize
            )
            sections.append(_Section(name_offset, sh_type, flags, offset, size, link, entsize))

        if 0 < shstrndx < len(sections):
            names = self._contents(sections[shstrndx])
            sections = [s._replace(name=_cstring(names, s.name_offset)) for s in sections]
        return sections

    def _read_symbols(self) -> list[RawSymbol]:
        for wanted in _SYMBOL_TABLE_TYPES:
            symbols = [
                symbol
                for section in self._sections
                if section.type == wanted
                for symbol in self._symbol_table(section)
            ]
            if symbols:
                return symbols
        return []

    def _symbol_table(self, section: _Section) -> list[RawSymbol]:
        if not section.entsize:
            return []
        names = b""
        if section.link < len(self._sections):
            names = self._contents(self._sections[section.link])

        layout = self._layout(_SYMBOL_FORMATS)
        is_64 = self._elf_class == _ELFCLASS64
        symbols = []
        # Entry 0 is the reserved null symbol.
        for index in range(1, section.size // section.entsize):
            fields = layout.unpack_from(self._data, section.offset + index * section.entsize)
            if is_64:
                name_offset, info, _other, shndx, value, size = fields
            else:
                name_offset, value, size, info, _other, shndx = fields
            sym_type = info & 0xF
            symbols.append(RawSymbol(
                name=_cstring(names, name_offset),
                value=value,
                size=size,
                type=_SYMBOL_TYPE_NAMES.get(sym_type, f"STT_{sym_type}"),
                section_index=shndx,
            ))
        return symbols

    def _contents(self, section: _Section) -> bytes:
        end = section.offset + section.size
        if end > len(self._data):
            raise BinaryFormatError(
                f"section {section.name or section.name_offset} extends past end of file"
            )
        return self._data[section.offset:end]


def _cstring(data: bytes, offset: int) -> str:
    """NUL-terminated ASCII string at *offset*, empty if out of range."""
    if not 0 <= offset < len(data):
        return ""
    end = data.find(b"\x00", offset)
    return data[offset:end if end != -1 else len(data)].decode("ascii", errors="replace")
