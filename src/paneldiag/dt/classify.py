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
Property encoding classification.

A raw property is printable text, present-but-empty (only NUL terminators)
or binary cells. Empty properties are never rendered as an empty string.
"""

from ..models import CellBinary, Classification, EmptyOrOpaqueBinary, Text
from .cells import decode_cells

NEWLINE = 0x0a


def is_printable(data: bytes) -> bool:
    """Whether every byte is printable ASCII or a newline."""
    return all(0x20 <= b <= 0x7e or b == NEWLINE for b in data)


def classify(raw: bytes) -> Classification:
    """
    Classify a raw property buffer.

    Args:
        raw: Property bytes as exposed by the node source

    Returns:
        Text for printable content (including NUL-separated string lists),
        EmptyOrOpaqueBinary when nothing is left after stripping trailing NULs,
        CellBinary with the decoded cells of ``raw`` otherwise
    """
    raw = bytes(raw)
    stripped = raw.rstrip(b"\0")
    if not stripped:
        return EmptyOrOpaqueBinary(raw=raw)

    segments = stripped.split(b"\0")
    if all(segments) and all(is_printable(s) for s in segments):
        return Text(text=", ".join(s.decode("ascii") for s in segments))

    return CellBinary(cells=tuple(decode_cells(raw)), raw=raw)
