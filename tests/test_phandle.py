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
Tests for the phandle index and tree scan.
"""

import pytest

from paneldiag.context import LocalContext
from paneldiag.dt.phandle import PhandleIndex, build_index, resolve, scan_tree
from paneldiag.dt.source import DirectoryNodeSource

from conftest import GPIO_CONTROLLER, PANEL_NODE, cells


class CountingSource:
    """Node source wrapper counting property reads."""

    def __init__(self, source):
        self.source = source
        self.reads = []

    def children(self, path):
        return self.source.children(path)

    def properties(self, path):
        return self.source.properties(path)

    def read(self, path, name):
        self.reads.append((path, name))
        return self.source.read(path, name)


@pytest.fixture
def source(tmp_path, write_tree, panel_tree):
    root = write_tree(tmp_path / "device-tree", panel_tree)
    return DirectoryNodeSource(LocalContext(), str(root))


class TestPhandleIndex:
    """Test phandle index construction and lookup."""

    def test_resolve_roundtrip(self, source):
        """Test a node's phandle resolves to its path."""
        index = build_index(source)
        assert resolve(index, 5) == GPIO_CONTROLLER
        assert resolve(index, 9) == GPIO_CONTROLLER + "/dsi_pins"

    def test_unknown_phandle(self, source):
        """Test a missing phandle resolves to None without raising."""
        assert resolve(build_index(source), 12345) is None

    def test_linux_phandle(self, tmp_path, write_tree):
        """Test the legacy linux,phandle property is indexed."""
        root = write_tree(tmp_path / "dt", {"/intc/linux,phandle": cells(3)})
        index = build_index(DirectoryNodeSource(LocalContext(), str(root)))
        assert resolve(index, 3) == "/intc"

    def test_first_match_wins(self, tmp_path, write_tree):
        """Test duplicate phandles keep the first node in walk order."""
        root = write_tree(tmp_path / "dt", {
            "/a/phandle": cells(7),
            "/b/phandle": cells(7),
        })
        index = build_index(DirectoryNodeSource(LocalContext(), str(root)))
        assert resolve(index, 7) == "/a"
        assert len(index) == 1

    def test_trailing_bytes_ignored(self, tmp_path, write_tree):
        """Test only the first cell of a phandle property is used."""
        root = write_tree(tmp_path / "dt", {"/n/phandle": cells(4, 99)})
        index = build_index(DirectoryNodeSource(LocalContext(), str(root)))
        assert 4 in index
        assert 99 not in index

    def test_short_phandle_skipped(self, tmp_path, write_tree):
        """Test a phandle shorter than one cell is skipped."""
        root = write_tree(tmp_path / "dt", {"/n/phandle": b"\x01"})
        assert len(build_index(DirectoryNodeSource(LocalContext(), str(root)))) == 0

    def test_index_is_immutable(self, source):
        """Test the index cannot be modified after construction."""
        index = build_index(source)
        with pytest.raises(TypeError):
            index.entries[1] = "/x"

    def test_empty_index(self):
        """Test a default index resolves nothing."""
        assert PhandleIndex().resolve(1) is None


class TestScanTree:
    """Test the single full-tree walk."""

    def test_nodes_in_walk_order(self, source):
        """Test every node is visited depth-first in sorted order."""
        scan = scan_tree(source)
        assert scan.nodes == (
            "/",
            "/soc",
            "/soc/dsi@7e700000",
            PANEL_NODE,
            GPIO_CONTROLLER,
            GPIO_CONTROLLER + "/dsi_pins",
        )

    def test_reads_each_phandle_once(self, source):
        """Test the scan reads only phandle properties, once each."""
        counting = CountingSource(source)
        scan_tree(counting)
        assert sorted(counting.reads) == [
            (GPIO_CONTROLLER, "phandle"),
            (GPIO_CONTROLLER + "/dsi_pins", "phandle"),
        ]

    def test_missing_root(self, tmp_path):
        """Test a missing tree scans to just the root."""
        source = DirectoryNodeSource(LocalContext(), str(tmp_path / "absent"))
        scan = scan_tree(source)
        assert scan.nodes == ("/",)
        assert len(scan.phandles) == 0
