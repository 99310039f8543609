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
Diagnostic check battery for a DSI display panel.

The battery runs a fixed, ordered list of independent checks against one
execution context and folds their verdicts into a summary. A check that fails
internally is reported inline; the remaining checks still run.
"""

import fnmatch
import posixpath
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .config import DiagnosticConfig
from .context import ExecutionContext
from .dt.phandle import scan_tree
from .dt.source import DirectoryNodeSource, NodeSource, node_name, read_node
from .dt.specifiers import render_property
from .exceptions import CommandUnavailableError
from .models import CheckResult, CommandResult, DiagnosticReport, Summary
from .utils import alternation, grep_lines

Verdict = Optional[Union[bool, str]]
CheckOutput = Tuple[List[str], Verdict]

NO_MATCHES = "(no matching lines)"


def _unavailable_note(argv: Sequence[str], result: CommandResult) -> List[str]:
    if result.returncode != 0 and not result.stdout.strip():
        return [f"({' '.join(argv)} exited with status {result.returncode})"]
    return []


def _skip_notice(tool: str) -> List[str]:
    return [f"{tool} not available; skipping"]


def build_guidance(driver_loaded: bool, init_observed: bool, module: str) -> List[str]:
    """Operator hints for the combination of driver and init verdicts."""
    lines = []
    if not driver_loaded and not init_observed:
        lines += [
            "- Panel driver not loaded and no init sequence logged:",
            "  * Check the module is installed for the running kernel (see module files above)",
            "  * Check the dtoverlay enabling the panel is present in config.txt",
            f"  * Try 'modprobe {module}' and re-run",
        ]
    elif driver_loaded and not init_observed:
        lines += [
            "- Driver loaded but init sequence not observed:",
            "  * Check the DSI host errors / timeouts above",
            "  * Verify reset/enable GPIO wiring and pinctrl state",
            "  * Check the panel node status is \"okay\"",
        ]
    elif init_observed and not driver_loaded:
        lines += [
            "- Init sequence observed but the module is not listed:",
            "  * The driver may be built into the kernel image",
        ]
    if init_observed:
        lines += [
            "- If init succeeded but screen is black consider:",
            "  * Verify AVDD/VGH/VGL/VCOM voltages (hardware)",
            "  * Verify FPC connector seating and wiring",
            "  * Try BIST module to force testpattern (software)",
        ]
    return lines


class DiagnosticBattery:
    """
    Ordered panel diagnostics against one execution context.

    Attributes:
        context: Where commands run and files are read
        config: Patterns, paths and names used by the checks
        source: Device tree source; defaults to the directory tree at
                config.dt_root read through the context
    """

    CHECKS = (
        ("modules", "Loaded modules (panel/vc4/drm/mipi)", "check_modules"),
        ("kernel-log", "dmesg: relevant lines (vc4/dsi/panel/drm/mipi)", "check_kernel_log"),
        ("dsi-errors", "DSI host errors / timeouts", "check_dsi_errors"),
        ("connectors", "DRM connector status", "check_connectors"),
        ("device-tree", "Device-Tree: panel nodes", "check_device_tree"),
        ("pinctrl", "Pinctrl status for reset/enable pins", "check_pinctrl"),
        ("module-files", "Installed panel module files", "check_module_files"),
    )
    SUMMARY = ("summary", "Quick summary / guidance")

    def __init__(
        self,
        context: ExecutionContext,
        config: Optional[DiagnosticConfig] = None,
        source: Optional[NodeSource] = None
    ):
        self.context = context
        self.config = config or DiagnosticConfig()
        self.source = source

    def run(self, progress: Optional[Callable[[str], None]] = None) -> DiagnosticReport:
        """
        Run every check in order and assemble the report.

        Args:
            progress: Optional callback receiving each check label before it runs

        Returns:
            DiagnosticReport with one result per check, summary last
        """
        results = []
        for key, label, method in self.CHECKS:
            if progress:
                progress(label)
            try:
                lines, verdict = getattr(self, method)()
            except Exception as e:  # a failing check must not stop the battery
                lines, verdict = [f"[check failed: {type(e).__name__}: {e}]"], None
            results.append(CheckResult(key=key, label=label, lines=tuple(lines), verdict=verdict))

        summary = self.summarize(results)
        key, label = self.SUMMARY
        results.append(CheckResult(key=key, label=label, lines=tuple(self.summary_lines(summary))))
        return DiagnosticReport(checks=tuple(results), summary=summary)

    def check_modules(self) -> CheckOutput:
        module = self.config.module_name
        try:
            result = self.context.run(["lsmod"])
        except CommandUnavailableError:
            return _skip_notice("lsmod"), False
        matches = grep_lines(result.lines, alternation((module,) + tuple(self.config.subsystems)))
        loaded = any(line.split()[0] == module for line in matches if line.split())
        return (matches or ["(no matching modules)"]) + _unavailable_note(["lsmod"], result), loaded

    def check_kernel_log(self) -> CheckOutput:
        config = self.config
        try:
            result = self.context.run(["dmesg"])
        except CommandUnavailableError:
            return _skip_notice("dmesg"), False
        pattern = alternation(("dsi", "vc4", config.driver, "drm", "mipi"))
        general = grep_lines(result.lines, pattern, ignore_case=True, number=True)
        if config.log_tail:
            general = general[-config.log_tail:]
        lifecycle = grep_lines(
            result.lines, alternation(config.lifecycle_phrases), ignore_case=True, number=True
        )
        observed = any(config.init_phrase.lower() in line.lower() for line in result.lines)

        lines = (general or [NO_MATCHES]) + _unavailable_note(["dmesg"], result)
        lines += ["", "--- specific panel/DSI lifecycle messages ---"]
        lines += lifecycle or [NO_MATCHES]
        return lines, observed

    def check_dsi_errors(self) -> CheckOutput:
        try:
            result = self.context.run(["dmesg"])
        except CommandUnavailableError:
            return _skip_notice("dmesg"), None
        matches = grep_lines(
            result.lines, alternation(self.config.dsi_error_tokens), ignore_case=True, number=True
        )
        return matches or [NO_MATCHES], None

    def check_connectors(self) -> CheckOutput:
        drm = self.config.drm_class_dir
        try:
            entries = self.context.listdir(drm)
        except OSError:
            entries = []

        connectors = sorted(e for e in entries if fnmatch.fnmatchcase(e, self.config.connector_pattern))
        if not connectors:
            return [f"No DSI connector entries found under {drm}"], "unknown"

        lines = []
        first_status = None
        for name in connectors:
            status_path = posixpath.join(drm, name, "status")
            if not self.context.is_file(status_path):
                lines.append(f"{name}: (status file not present)")
                continue
            try:
                status = self.context.read_text(status_path) or "unknown"
            except OSError:
                status = "unknown"
            lines.append(f"{name}: {status}")
            if first_status is None:
                first_status = status
        return lines, first_status or "unknown"

    def check_device_tree(self) -> CheckOutput:
        config = self.config
        source = self.source or DirectoryNodeSource(self.context, config.dt_root)
        scan = scan_tree(source)
        panels = [
            path for path in scan.nodes
            if path != "/" and fnmatch.fnmatchcase(node_name(path), config.panel_pattern)
        ]
        if not panels:
            return ["no panel nodes found"], None

        lines = []
        for path in panels:
            lines.append(f"== {path} ==")
            present = source.properties(path)
            lines.append("properties: " + (", ".join(present) or "(none)"))
            node = read_node(source, path, config.panel_properties)
            if not node.properties:
                lines.append("(none of the inspected properties present)")
            for prop in node.properties:
                lines.extend(render_property(prop.name, prop.value, scan.phandles))
        return lines, None

    def check_pinctrl(self) -> CheckOutput:
        if not self.context.which("pinctrl"):
            return ["pinctrl not found; skipping pinctrl checks (use 'pinctrl' from kernel tools)"], None

        pins = ", ".join(str(p) for p in self.config.pins)
        lines = [f"pinctrl available - listing pin state for gpios {pins}"]
        for pin in self.config.pins:
            argv = ["pinctrl", "get", str(pin)]
            try:
                result = self.context.run(argv)
            except CommandUnavailableError as e:
                lines.append(f"gpio {pin}: {e}")
                continue
            lines += result.lines or [f"gpio {pin}: (no output)"]
        return lines, None

    def check_module_files(self) -> CheckOutput:
        config = self.config
        try:
            release = self.context.run(["uname", "-r"]).stdout.strip()
        except CommandUnavailableError:
            return _skip_notice("uname"), None
        if not release:
            return ["(kernel release unknown)"], None

        panel_dir = config.panel_module_dir(release)
        argv = ["ls", "-l", panel_dir]
        try:
            listing = self.context.run(argv)
        except CommandUnavailableError:
            return [f"{panel_dir}:"] + _skip_notice("ls"), None

        lines = [f"{panel_dir}:"]
        modules = [line for line in listing.lines if config.driver_token in line]
        lines += modules or [f"(no {config.driver_token} module files found)"]
        lines += _unavailable_note(argv, listing)

        lines += ["", "--- installed module archive ---"]
        archives = [
            line for line in listing.lines
            if line.split() and fnmatch.fnmatchcase(line.split()[-1], f"{config.driver}*.xz")
        ]
        lines += archives or ["(no compressed module archive found)"]
        return lines, None

    def summarize(self, results: Sequence[CheckResult]) -> Summary:
        """Derive the summary verdicts from check results."""
        verdicts = {r.key: r.verdict for r in results}
        connector = verdicts.get("connectors")
        driver_loaded = verdicts.get("modules") is True
        init_observed = verdicts.get("kernel-log") is True
        return Summary(
            connector_status=connector if isinstance(connector, str) else "unknown",
            driver_loaded=driver_loaded,
            init_observed=init_observed,
            guidance=tuple(build_guidance(driver_loaded, init_observed, self.config.module_name)),
        )

    @staticmethod
    def summary_lines(summary: Summary) -> List[str]:
        def yes_no(value: bool) -> str:
            return "yes" if value else "no"

        return [
            f"- DRM connector: {summary.connector_status}",
            f"- Panel driver loaded: {yes_no(summary.driver_loaded)}",
            f"- Init sequence in dmesg: {yes_no(summary.init_observed)}",
        ] + list(summary.guidance)


def run_battery(
    context: ExecutionContext,
    config: Optional[DiagnosticConfig] = None,
    source: Optional[NodeSource] = None
) -> DiagnosticReport:
    """Run the full check battery against a context."""
    return DiagnosticBattery(context, config, source).run()
