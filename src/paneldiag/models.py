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
Data models for device-tree decoding and diagnostic reports.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class Property:
    """A named raw property of a device tree node."""
    name: str
    value: bytes


@dataclass(frozen=True)
class DeviceNode:
    """A device tree node and the properties read from it."""
    path: str
    properties: Tuple[Property, ...] = ()

    def get(self, name: str) -> Optional[bytes]:
        """Return the raw value of a property, or None if absent."""
        for prop in self.properties:
            if prop.name == name:
                return prop.value
        return None


@dataclass(frozen=True)
class Text:
    """Property that holds printable text."""
    text: str


@dataclass(frozen=True)
class EmptyOrOpaqueBinary:
    """Property that is present but carries nothing printable."""
    raw: bytes


@dataclass(frozen=True)
class CellBinary:
    """Property holding binary data, decoded into cells."""
    cells: Tuple[int, ...]
    raw: bytes


Classification = Union[Text, EmptyOrOpaqueBinary, CellBinary]


@dataclass(frozen=True)
class GpioSpecifier:
    """A <controller pin flags> GPIO specifier."""
    controller: int
    pin: Optional[int] = None  # None when the group was truncated
    flags: Optional[int] = None


@dataclass(frozen=True)
class PinctrlSpecifier:
    """A <group [index]> pin-control specifier."""
    group: int
    index: Optional[int] = None


@dataclass(frozen=True)
class CommandResult:
    """Return code and text output of a command run in a context."""
    returncode: int
    stdout: str

    @property
    def lines(self) -> List[str]:
        return self.stdout.splitlines()


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single diagnostic check."""
    key: str
    label: str
    lines: Tuple[str, ...] = ()
    verdict: Optional[Union[bool, str]] = None


@dataclass(frozen=True)
class Summary:
    """Verdicts derived from the check battery."""
    connector_status: str
    driver_loaded: bool
    init_observed: bool
    guidance: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DiagnosticReport:
    """Ordered check results of one diagnostic run."""
    checks: Tuple[CheckResult, ...] = field(default_factory=tuple)
    summary: Optional[Summary] = None

    def get(self, key: str) -> Optional[CheckResult]:
        """Return the check result with the given key."""
        for check in self.checks:
            if check.key == key:
                return check
        return None
