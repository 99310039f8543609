# Copyright 2025 Multikernel Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Rendering of diagnostic reports as text, JSON or YAML.
"""

from typing import Any, Dict, List

from .models import CheckResult, DiagnosticReport

FORMATS = ("text", "json", "yaml")


def format_header(label: str) -> str:
    return f"===== {label} ====="


def format_check(check: CheckResult) -> List[str]:
    """Render one check as a header followed by its lines."""
    return ["", format_header(check.label)] + list(check.lines)


def format_report(report: DiagnosticReport) -> str:
    """Render a full report in check order."""
    lines = []
    for check in report.checks:
        lines.extend(format_check(check))
    return "\n".join(lines)


def report_data(report: DiagnosticReport) -> Dict[str, Any]:
    """Plain-data view of a report, for the structured formats."""
    summary = report.summary
    return {
        "checks": [
            {
                "key": check.key,
                "label": check.label,
                "lines": list(check.lines),
                "verdict": check.verdict,
            }
            for check in report.checks
        ],
        "summary": {
            "connector_status": summary.connector_status,
            "driver_loaded": summary.driver_loaded,
            "init_observed": summary.init_observed,
            "guidance": list(summary.guidance),
        },
    }


def generate_report(report: DiagnosticReport, format: str = "text") -> str:
    """Render a report in the requested format."""
    if format == "json":
        import json
        return json.dumps(report_data(report), indent=2)
    elif format == "yaml":
        import yaml
        return yaml.dump(report_data(report), default_flow_style=False, sort_keys=False)
    return format_report(report)
