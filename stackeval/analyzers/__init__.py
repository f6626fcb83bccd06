"""
stackeval Analyzers
====================

Symbol table, per-word classification and the flat / trace walks.
"""

from stackeval.analyzers.classifier import WordClassifier, legend
from stackeval.analyzers.renderer import DumpRenderer
from stackeval.analyzers.symbol_table import SymbolTable

__all__ = [
    "DumpRenderer",
    "SymbolTable",
    "WordClassifier",
    "legend",
]
