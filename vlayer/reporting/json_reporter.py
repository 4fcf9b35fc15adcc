"""
vlayer JSON Reporter

Machine-readable output: the ScanResult fields plus tool metadata.

{
    "version": "1.0",
    "tool": {"name": "vlayer", "version": "..."},
    "target": "...",
    "findings": [...],
    "scannedFiles": N,
    "scanDurationMs": N,
    "stack": {...},
    "complianceScore": {...},
    "warnings": [...]
}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from vlayer import __version__
from vlayer.core.scan import ScanResult


class JSONReporter:
    """Generates JSON-formatted scan reports."""

    def __init__(self, target: str) -> None:
        self.target = target

    def report(self, result: ScanResult, output_file: Optional[str] = None) -> str:
        """
        Generate JSON report.

        Args:
            result: The finished scan.
            output_file: Optional file path to write the report to.

        Returns:
            The JSON string.
        """
        report_data = {
            "version": "1.0",
            "tool": {
                "name": "vlayer",
                "version": __version__,
            },
            "target": self.target,
        }
        report_data.update(result.to_dict())

        json_str = json.dumps(report_data, indent=2, default=str)

        if output_file:
            Path(output_file).write_text(json_str, encoding="utf-8")

        return json_str
