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
Tests for cell decoding strategies.
"""

import struct

import pytest

from paneldiag.dt.cells import (
    CellDecoder,
    FdtPropertyDecoder,
    HexGroupDecoder,
    StructDecoder,
    decode_cell,
    decode_cells,
)

from conftest import cells

SAMPLES = [
    cells(5, 17, 0),
    cells(0xffffffff, 0, 0x80000000, 1),
    cells(0x7e700000, 0x200),
    bytes(range(32)),
]


class BrokenDecoder(CellDecoder):
    name = "broken"

    def decode(self, data):
        raise ValueError("cannot decode")


class UnavailableDecoder(CellDecoder):
    name = "unavailable"

    def available(self):
        return False

    def decode(self, data):
        raise AssertionError("must not be called")


class TestDecodeCells:
    """Test the public decode_cells entry point."""

    def test_aligned_buffer(self):
        """Test big-endian words are decoded in order."""
        assert decode_cells(cells(5, 17, 0)) == [5, 17, 0]

    @pytest.mark.parametrize("data", SAMPLES)
    def test_aligned_length(self, data):
        """Test an aligned buffer yields one value per 4-byte window."""
        values = decode_cells(data)
        assert len(values) == len(data) // 4
        assert values == list(struct.unpack(f">{len(data) // 4}I", data))

    def test_unaligned_buffer_falls_back_to_bytes(self):
        """Test a buffer that is not a multiple of 4 yields one value per byte."""
        assert decode_cells(b"\x01\x02\x03") == [1, 2, 3]
        assert len(decode_cells(bytes(range(7)))) == 7

    def test_empty_buffer(self):
        """Test an empty buffer decodes to nothing."""
        assert decode_cells(b"") == []

    def test_accepts_bytearray(self):
        """Test mutable buffers are accepted."""
        assert decode_cells(bytearray(cells(42))) == [42]

    def test_failing_strategy_falls_through(self):
        """Test the next strategy is used when one raises."""
        assert decode_cells(cells(1, 2), [BrokenDecoder(), StructDecoder()]) == [1, 2]

    def test_unavailable_strategy_is_skipped(self):
        """Test unavailable strategies are never called."""
        assert decode_cells(cells(3), [UnavailableDecoder(), HexGroupDecoder()]) == [3]

    def test_no_usable_strategy_still_decodes(self):
        """Test decoding never raises even when every strategy fails."""
        assert decode_cells(cells(7, 8), [BrokenDecoder()]) == [7, 8]


class TestStrategies:
    """Test each strategy independently for numeric identity."""

    @pytest.mark.parametrize("data", SAMPLES)
    def test_struct_matches_hex(self, data):
        """Test the struct and hex strategies agree."""
        assert StructDecoder().decode(data) == HexGroupDecoder().decode(data)

    @pytest.mark.parametrize("data", SAMPLES)
    def test_libfdt_matches_struct(self, data):
        """Test the libfdt strategy agrees with struct when available."""
        decoder = FdtPropertyDecoder()
        if not decoder.available():
            pytest.skip("installed libfdt has no Property.as_uint32")
        assert decoder.decode(data) == StructDecoder().decode(data)


class TestDecodeCell:
    """Test single-cell decoding used for phandles."""

    def test_ignores_trailing_bytes(self):
        """Test only the first 4 bytes are used."""
        assert decode_cell(cells(5) + b"\xff\xff") == 5

    def test_short_buffer(self):
        """Test a buffer shorter than a cell has no value."""
        assert decode_cell(b"\x00\x05") is None
