"""Shared fixtures: in-memory ELF images and dump text."""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable

import pytest

STT = {"NOTYPE": 0, "OBJECT": 1, "FUNC": 2, "SECTION": 3, "FILE": 4, "TLS": 6}

# (name, sh_type, sh_flags)
_SECTIONS = [
    ("", 0, 0),
    (".text", 1, 0x6),     # AX
    (".rodata", 1, 0x2),   # A
    (".bss", 8, 0x3),      # WA
    (".comment", 1, 0x0),
]

DEFAULT_SYMBOLS = [
    ("main", 0x1000, 0x100, "FUNC", 1),
    ("helper", 0x1100, 0x40, "FUNC", 1),
    ("table", 0x3000, 0x20, "OBJECT", 2),
    ("counter", 0x4000, 4, "OBJECT", 3),
    ("zeroFunc", 0x5000, 0, "FUNC", 1),
    ("crt0.c", 0, 0, "FILE", 0xFFF1),
    ("", 0x1000, 0, "SECTION", 1),
    ("tlsVar", 0x10, 4, "TLS", 4),
    ("_vx_offset_WIND_TCB", 0x20, 4, "OBJECT", 2),
    ("cpuPwrIntEnterHook", 0xEEEEEEEE, 0, "FUNC", 1),
]


def build_elf(
    symbols=DEFAULT_SYMBOLS,
    *,
    is_64: bool = False,
    little: bool = False,
    machine: int = 20,
    symtab_name: str = ".symtab",
) -> bytes:
    """Assemble a minimal relocatable ELF image with one symbol table."""
    e = "<" if little else ">"
    symtab_type = 11 if symtab_name == ".dynsym" else 2
    strtab_name = ".dynstr" if symtab_name == ".dynsym" else ".strtab"

    sections = list(_SECTIONS) + [
        (symtab_name, symtab_type, 0x2),
        (strtab_name, 3, 0x0),
        (".shstrtab", 3, 0x0),
    ]
    symtab_index = len(_SECTIONS)
    strtab_index = symtab_index + 1
    shstrtab_index = symtab_index + 2

    shstrtab = b"\x00"
    name_offsets = []
    for name, _, _ in sections:
        if name:
            name_offsets.append(len(shstrtab))
            shstrtab += name.encode() + b"\x00"
        else:
            name_offsets.append(0)

    strtab = b"\x00"
    symtab = b"\x00" * (24 if is_64 else 16)
    for name, value, size, kind, shndx in symbols:
        st_name = 0
        if name:
            st_name = len(strtab)
            strtab += name.encode() + b"\x00"
        info = (1 << 4) | STT[kind]
        if is_64:
            symtab += struct.pack(f"{e}IBBHQQ", st_name, info, 0, shndx, value, size)
        else:
            symtab += struct.pack(f"{e}IIIBBH", st_name, value, size, info, 0, shndx)

    ehsize = 64 if is_64 else 52
    shentsize = 64 if is_64 else 40
    blobs = {symtab_index: symtab, strtab_index: strtab, shstrtab_index: shstrtab}

    body = b""
    offsets = {}
    for index in (symtab_index, strtab_index, shstrtab_index):
        offsets[index] = ehsize + len(body)
        body += blobs[index]
    shoff = ehsize + len(body)

    shdrs = b""
    for i, (name, sh_type, flags) in enumerate(sections):
        offset = offsets.get(i, 0)
        size = len(blobs.get(i, b""))
        link = strtab_index if i == symtab_index else 0
        entsize = (24 if is_64 else 16) if i == symtab_index else 0
        if is_64:
            shdrs += struct.pack(
                f"{e}IIQQQQIIQQ",
                name_offsets[i], sh_type, flags, 0, offset, size, link, 0, 1, entsize,
            )
        else:
            shdrs += struct.pack(
                f"{e}IIIIIIIIII",
                name_offsets[i], sh_type, flags, 0, offset, size, link, 0, 1, entsize,
            )

    ident = b"\x7fELF" + bytes([2 if is_64 else 1, 1 if little else 2, 1]) + b"\x00" * 9
    header_fmt = f"{e}HHIQQQIHHHHHH" if is_64 else f"{e}HHIIIIIHHHHHH"
    header = ident + struct.pack(
        header_fmt,
        1, machine, 1, 0, 0, shoff, 0, ehsize, 0, 0, shentsize, len(sections),
        shstrtab_index,
    )
    return header + body + shdrs


@pytest.fixture
def elf_bytes() -> Callable[..., bytes]:
    return build_elf


@pytest.fixture
def elf_path(tmp_path: Path) -> Path:
    path = tmp_path / "firmware.elf"
    path.write_bytes(build_elf())
    return path


STACK_DUMP = """\
-> d 0x80000, 8
0x00080000:  00001010 00080010 00003004 00005010   *................*
0x00080010:  eeeeeeee eeeeeeee 00025000 00001104   *.........P......*
value = 0 = 0x0
"""


@pytest.fixture
def dump_path(tmp_path: Path) -> Path:
    path = tmp_path / "stack.txt"
    path.write_text(STACK_DUMP)
    return path
