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
paneldiag: DSI panel and device-tree diagnostics

Inspects a live (or captured) device tree, decodes GPIO and pin-control
specifiers by resolving phandles, and checks kernel state for a display panel.
"""

__version__ = "0.1.0"

from .battery import DiagnosticBattery, run_battery
from .config import DiagnosticConfig
from .context import ExecutionContext, LocalContext, RemoteContext, SnapshotContext
from .models import CheckResult, DiagnosticReport, Summary
from .exceptions import (
    PanelDiagError,
    ParseError,
    CommandUnavailableError,
    ConnectivityError,
    SnapshotError,
)

__all__ = [
    # Battery
    'DiagnosticBattery',
    'run_battery',
    'DiagnosticConfig',
    # Contexts
    'ExecutionContext',
    'LocalContext',
    'RemoteContext',
    'SnapshotContext',
    # Models
    'CheckResult',
    'DiagnosticReport',
    'Summary',
    # Exceptions
    'PanelDiagError',
    'ParseError',
    'CommandUnavailableError',
    'ConnectivityError',
    'SnapshotError',
]
