"""
stackeval Parsers
==================

Input parsing: hex-dump grammars, the dump decoder that turns dump text
into a contiguous byte buffer, and the ELF symbol source reader.
"""

from stackeval.parsers.dump_decoder import DumpDecoder, format_dump
from stackeval.parsers.elf_parser import ELFParser
from stackeval.parsers.grammars import GRAMMARS, DumpGrammar, get_grammar

__all__ = [
    "DumpDecoder",
    "DumpGrammar",
    "ELFParser",
    "GRAMMARS",
    "format_dump",
    "get_grammar",
]
