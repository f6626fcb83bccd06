"""
stackeval Output
=================

Terminal display and report generation.
"""

from stackeval.output.console import StackEvalConsoleOutput
from stackeval.output.report import StackEvalReportGenerator

__all__ = [
    "StackEvalConsoleOutput",
    "StackEvalReportGenerator",
]
