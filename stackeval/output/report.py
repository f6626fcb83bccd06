"""
stackeval Report Generator
===========================

Writes the outcome of a run to disk.

The JSON report is the pydantic dump of the loaded binary, the decode
counters and the walk result, suitable for diffing two dumps of the same
target.  The HTML report is the recorded console output exported by Rich,
so it shows exactly the colours seen in the terminal.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from shared.console import EvalConsole

from stackeval import __version__
from stackeval.core.models import (
    AnnotationResult,
    DecodeStats,
    LoadedBinary,
    MemoryDump,
    TraceResult,
)


class StackEvalReportGenerator:
    """Generate JSON and HTML reports from a stackeval run.

    Usage::

        generator = StackEvalReportGenerator()
        data = generator.build(binary, dump, stats, result)
        generator.generate_json(data, "run.json")
        generator.generate_html(console, "run.html")
    """

    def build(
        self,
        binary: Optional[LoadedBinary],
        dump: Optional[MemoryDump] = None,
        decode_stats: Optional[DecodeStats] = None,
        result: Union[AnnotationResult, TraceResult, None] = None,
    ) -> dict[str, Any]:
        """Assemble a JSON-ready report dictionary."""
        report: dict[str, Any] = {
            "report_type": "stackeval",
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "binary": binary.model_dump(mode="json") if binary else None,
        }
        if dump is not None:
            report["dump"] = {
                "base_address": dump.base_address,
                "size": dump.size,
                "word_width": dump.word_width,
                "byte_order": dump.byte_order.value,
            }
        if decode_stats is not None:
            report["decode"] = decode_stats.model_dump(mode="json")
        if result is not None:
            report["mode"] = "trace" if isinstance(result, TraceResult) else "dump"
            report["result"] = result.model_dump(mode="json")
            if isinstance(result, TraceResult):
                report["anomalies"] = result.anomalies
        return report

    def generate_json(self, report: dict[str, Any], output_path: str | Path) -> str:
        """Write *report* as indented JSON.

        Returns:
            The absolute path of the generated report.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
        return str(path.resolve())

    def generate_html(self, console: EvalConsole, output_path: str | Path) -> str:
        """Export everything *console* recorded as a standalone HTML page.

        The console must have been created with ``record=True``.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(console.export_html(), encoding="utf-8")
        return str(path.resolve())
