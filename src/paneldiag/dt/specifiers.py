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
GPIO and pin-control specifier decoding and property rendering.

Specifier decoders take a cell sequence and the phandle index of the current
run. They are total: empty, short or unresolvable input still renders.
"""

import re
from typing import List, Optional, Sequence

from ..models import CellBinary, EmptyOrOpaqueBinary, GpioSpecifier, PinctrlSpecifier, Text
from ..utils import hexdump_lines
from .cells import CELL_SIZE, decode_cells
from .classify import classify
from .phandle import PhandleIndex

GPIO_CELLS = 3
PINCTRL_PROPERTY = re.compile(r"^pinctrl-\d+$")
NO_CELLS = "(no cells found / not decodable)"
NONPRINTABLE = "(binary/contains-nonprintable)"


def is_gpio_property(name: str) -> bool:
    return name in ("gpios", "gpio") or name.endswith("-gpios") or name.endswith("-gpio")


def is_pinctrl_property(name: str) -> bool:
    return bool(PINCTRL_PROPERTY.match(name))


def decode_gpios(cells: Sequence[int]) -> List[GpioSpecifier]:
    """
    Group cells into <controller pin flags> triplets.

    A trailing group with fewer than three cells is kept with the missing
    fields left as None.
    """
    specs = []
    for i in range(0, len(cells), GPIO_CELLS):
        group = list(cells[i:i + GPIO_CELLS]) + [None] * GPIO_CELLS
        specs.append(GpioSpecifier(controller=group[0], pin=group[1], flags=group[2]))
    return specs


def decode_pinctrl(cells: Sequence[int]) -> List[PinctrlSpecifier]:
    """
    Group cells into <phandle [index]> pin-control entries.

    The cell count of the referenced group is not looked up. One cell is taken
    as the phandle and the next one, if any remains, as its index.
    """
    specs = []
    i = 0
    while i < len(cells):
        group = cells[i]
        index = cells[i + 1] if i + 1 < len(cells) else None
        specs.append(PinctrlSpecifier(group=group, index=index))
        i += 2
    return specs


def describe_phandle(value: int, index: PhandleIndex) -> str:
    """Node path for a phandle, or an unresolved marker."""
    path = index.resolve(value)
    return path if path is not None else f"(phandle:{value} not resolved)"


def format_gpio(spec: GpioSpecifier, index: PhandleIndex) -> str:
    pin = "?" if spec.pin is None else spec.pin
    flags = 0 if spec.flags is None else spec.flags
    node = describe_phandle(spec.controller, index)
    return f"controller: {node} (ph:{spec.controller}), pin: {pin}, flags: {flags}"


def format_pinctrl(spec: PinctrlSpecifier, index: PhandleIndex) -> str:
    node = describe_phandle(spec.group, index)
    suffix = "" if spec.index is None else f", index:{spec.index}"
    return f"pinctrl: {node} (ph:{spec.group}){suffix}"


def _format_cells(raw: bytes, cells: Sequence[int]) -> str:
    if len(raw) % CELL_SIZE != 0:
        return "[" + " ".join(f"{b:02x}" for b in cells) + "]"
    return "<" + " ".join(f"0x{c:08x}" for c in cells) + ">"


def _specifier_lines(name: str, cells: Sequence[int], index: PhandleIndex) -> Optional[List[str]]:
    if is_gpio_property(name):
        formatted = [format_gpio(s, index) for s in decode_gpios(cells)]
    elif is_pinctrl_property(name):
        formatted = [format_pinctrl(s, index) for s in decode_pinctrl(cells)]
    else:
        return None
    if not formatted:
        return [f"{name}: {NO_CELLS}"]
    return [f"{name}: {line}" for line in formatted]


def render_property(name: str, raw: bytes, index: PhandleIndex) -> List[str]:
    """
    Render one property for the report.

    Args:
        name: Property name, which selects the specifier decoder
        raw: Raw property bytes
        index: Phandle index of the current run

    Returns:
        Report lines. Binary values carry an indented hexdump, and specifier
        properties list their decoded groups after it
    """
    kind = classify(raw)
    dump = [f"  {line}" for line in hexdump_lines(raw)]

    if isinstance(kind, Text):
        return [f"{name}: {kind.text}"]

    if isinstance(kind, EmptyOrOpaqueBinary):
        lines = [f"{name}: (binary/empty)"] + dump
        decoded = _specifier_lines(name, decode_cells(kind.raw), index)
        return lines + (decoded or [])

    if isinstance(kind, CellBinary):
        decoded = _specifier_lines(name, kind.cells, index)
        if decoded is None:
            return [f"{name}: {_format_cells(kind.raw, kind.cells)}"] + dump
        return [f"{name}: {NONPRINTABLE}"] + dump + decoded

    raise TypeError(f"Unexpected classification {kind!r}")
