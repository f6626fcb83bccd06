"""
stackeval -- Memory Dump Stack Evaluator
=========================================

Annotates hex dumps of embedded-target memory against the symbol table of
the firmware image that produced them: every machine word is shown as a
symbol reference, a pointer into the surrounding stack, or a plain value,
and a trace mode reconstructs a linear history of call frames.

Modules:
    - stackeval.core.engine: Run orchestration (binary, dump, walks)
    - stackeval.core.models: Pydantic data models
    - stackeval.core.errors: Exception hierarchy
    - stackeval.parsers: Dump grammars, dump decoder, ELF reader
    - stackeval.analyzers: Symbol table, word classifier, renderer
    - stackeval.output: Console and report output
    - stackeval.cli: Click-based command-line interface
"""

__version__ = "1.0.0"
__tool_name__ = "stackeval"
