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
Command-line interface for paneldiag.
"""

import sys
from typing import Optional

import click

from . import __version__
from .battery import DiagnosticBattery
from .config import DiagnosticConfig
from .context import LocalContext, RemoteContext
from .dt.source import FdtNodeSource
from .exceptions import ConnectivityError, ParseError, SnapshotError
from .reporter import FORMATS, generate_report
from .utils import echo_debug, echo_error, echolog

EXIT_USAGE = 2
EXIT_PARSE = 4
EXIT_UNREACHABLE = 255


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="panel-diag")
@click.option('--remote', '-r', metavar='USER@HOST',
              help='Run the checks on a remote host via SSH (uses sudo)')
@click.option('--driver', default=DiagnosticConfig.DEFAULT_DRIVER, show_default=True,
              help='Panel driver name')
@click.option('--dtb', type=click.Path(dir_okay=False),
              help='Decode a flattened device tree blob instead of the live tree (local only)')
@click.option('--dt-root', default=DiagnosticConfig.DEFAULT_DT_ROOT, show_default=True,
              help='Directory exposing the live device tree')
@click.option('--format', 'output_format', type=click.Choice(FORMATS), default='text',
              show_default=True, help='Report output format')
@click.option('--debug', is_flag=True, help='Enable debug mode')
def main(remote: Optional[str], driver: str, dtb: Optional[str], dt_root: str,
         output_format: str, debug: bool):
    """Run a sequence of checks for a DSI display panel and print a summary.

    \b
    Checks performed:
     - loaded kernel modules relevant to DSI/VC4/panel
     - dmesg lines for vc4/dsi/panel and init lifecycle traces
     - DSI host errors / timeouts
     - DRM connector status (*-DSI-*)
     - device-tree panel nodes, with GPIO/pinctrl phandles resolved
     - pinctrl state of the reset/enable pins
     - installed panel module files under /lib/modules

    Run on the target as root, or as a user allowed to read
    /proc/device-tree and dmesg.
    """
    config = DiagnosticConfig(driver=driver, dt_root=dt_root)
    echo_debug(f"config={config}", debug)

    if remote is not None:
        if not remote.strip():
            echo_error("--remote requires user@host")
            sys.exit(EXIT_USAGE)
        if remote.startswith("-"):
            echo_error(f"Invalid host '{remote}': must not start with '-'")
            sys.exit(EXIT_USAGE)
        if dtb:
            echo_error("--dtb cannot be combined with --remote")
            sys.exit(EXIT_USAGE)
        sys.exit(_run_remote(remote, config, output_format, debug))

    source = None
    if dtb:
        try:
            source = FdtNodeSource.from_file(dtb)
        except ParseError as e:
            echo_error(str(e))
            sys.exit(EXIT_PARSE)

    structured = output_format != "text"
    echolog("Starting panel diagnosis...", err=structured)
    try:
        report = DiagnosticBattery(LocalContext(), config, source).run()
    except Exception as e:
        echo_error(f"Unexpected error: {e}")
        if debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    click.echo(generate_report(report, output_format))
    echolog("Diagnosis complete.", err=structured)


def _run_remote(host: str, config: DiagnosticConfig, output_format: str, debug: bool) -> int:
    """Probe, collect and diagnose a remote host. Returns the exit code."""
    structured = output_format != "text"
    echolog(f"Running remote diagnosis on {host} (via SSH)...", err=structured)
    context = RemoteContext(host, config)
    try:
        returncode = context.connect()
    except ConnectivityError as e:
        echo_error(f"{e}. Check access and network.")
        return EXIT_UNREACHABLE
    except SnapshotError as e:
        echo_error(str(e))
        return 1
    echo_debug(f"snapshot: {len(context.snapshot.files)} files, "
               f"{len(context.snapshot.commands)} commands", debug)

    report = DiagnosticBattery(context, config).run()
    click.echo(generate_report(report, output_format))
    if returncode != 0:
        echolog(f"Remote finished with exit code {returncode} (non-fatal).", err=structured)
    else:
        echolog("Remote diagnosis finished", err=structured)
    return 0


if __name__ == "__main__":
    main()
