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
Exception classes for paneldiag decoding and collection errors.
"""


class PanelDiagError(Exception):
    """Base exception for all paneldiag errors."""


class ParseError(PanelDiagError):
    """Raised when a flattened device tree blob cannot be parsed."""


class CommandUnavailableError(PanelDiagError):
    """Raised when a command is not available in the execution context."""


class ConnectivityError(PanelDiagError):
    """Raised when the remote host cannot be reached."""


class SnapshotError(PanelDiagError):
    """Raised when a remote snapshot archive cannot be read."""
