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
Cell decoding for binary device tree properties.

A cell is a 32-bit big-endian unsigned integer. Decoding is done by an ordered
list of strategies, each usable on its own; the first available strategy that
succeeds wins. All strategies return identical values for aligned input.
"""

import struct
from typing import List, Optional, Sequence

import libfdt

CELL_SIZE = 4


class CellDecoder:
    """Base class for cell decoding strategies."""

    name = "base"

    def available(self) -> bool:
        """Whether this strategy can run in the current environment."""
        return True

    def decode(self, data: bytes) -> List[int]:
        """Decode a 4-byte aligned buffer into cells."""
        raise NotImplementedError


class FdtPropertyDecoder(CellDecoder):
    """Word-oriented decoding through libfdt's property accessors."""

    name = "libfdt"

    def available(self) -> bool:
        return hasattr(libfdt, "Property") and hasattr(libfdt.Property, "as_uint32")

    def decode(self, data: bytes) -> List[int]:
        return [
            libfdt.Property("cell", data[i:i + CELL_SIZE]).as_uint32()
            for i in range(0, len(data), CELL_SIZE)
        ]


class StructDecoder(CellDecoder):
    """Word-oriented decoding with a single struct unpack."""

    name = "struct"

    def decode(self, data: bytes) -> List[int]:
        count = len(data) // CELL_SIZE
        return list(struct.unpack(f">{count}I", data))


class HexGroupDecoder(CellDecoder):
    """Bulk hex dump of the buffer, regrouped into 8-digit words."""

    name = "hex"

    def decode(self, data: bytes) -> List[int]:
        digits = data.hex()
        return [int(digits[i:i + 8], 16) for i in range(0, len(digits), 8)]


DEFAULT_DECODERS: Sequence[CellDecoder] = (
    FdtPropertyDecoder(),
    StructDecoder(),
    HexGroupDecoder(),
)


def decode_cells(data: bytes, decoders: Optional[Sequence[CellDecoder]] = None) -> List[int]:
    """
    Decode a property buffer into cells.

    Buffers whose length is not a multiple of 4 are not cell arrays; each byte
    is returned as its own value instead.

    Args:
        data: Raw property bytes
        decoders: Strategies to try in order. Defaults to DEFAULT_DECODERS

    Returns:
        Decoded values in buffer order; empty for an empty buffer
    """
    data = bytes(data)
    if not data:
        return []
    if len(data) % CELL_SIZE != 0:
        return list(data)

    for decoder in (DEFAULT_DECODERS if decoders is None else decoders):
        if not decoder.available():
            continue
        try:
            return decoder.decode(data)
        except (struct.error, ValueError, TypeError, libfdt.FdtException):
            continue

    return HexGroupDecoder().decode(data)


def decode_cell(data: bytes) -> Optional[int]:
    """Decode the first cell of a buffer, ignoring trailing bytes."""
    if len(data) < CELL_SIZE:
        return None
    return decode_cells(data[:CELL_SIZE])[0]
