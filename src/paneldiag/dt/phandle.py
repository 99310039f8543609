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
Phandle index: phandle value to node path lookup.

The whole tree is walked once per report. The same walk records every node
path, so later node enumeration reuses it instead of walking again.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple

from .cells import decode_cell
from .source import NodeSource, join_path

PHANDLE_PROPERTIES = ("phandle", "linux,phandle")


@dataclass(frozen=True)
class PhandleIndex:
    """Immutable phandle -> node path mapping."""
    entries: Mapping[int, str] = field(default_factory=lambda: MappingProxyType({}))

    def resolve(self, value: int) -> Optional[str]:
        """Node path for a phandle, or None if unresolved."""
        return self.entries.get(value)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, value: int) -> bool:
        return value in self.entries


@dataclass(frozen=True)
class TreeScan:
    """Result of a single full walk of a device tree."""
    phandles: PhandleIndex
    nodes: Tuple[str, ...]


def walk(source: NodeSource, path: str = "/") -> Iterator[str]:
    """Yield node paths depth-first, children in sorted order."""
    yield path
    for child in source.children(path):
        yield from walk(source, join_path(path, child))


def scan_tree(source: NodeSource) -> TreeScan:
    """
    Walk the tree once, collecting node paths and phandles.

    When two nodes claim the same phandle, the first one visited wins.

    Args:
        source: Node source to scan

    Returns:
        TreeScan with the phandle index and all node paths in walk order
    """
    entries: Dict[int, str] = {}
    nodes = []
    for path in walk(source):
        nodes.append(path)
        props = source.properties(path)
        for name in PHANDLE_PROPERTIES:
            if name not in props:
                continue
            raw = source.read(path, name)
            value = decode_cell(raw) if raw is not None else None
            if value is not None and value not in entries:
                entries[value] = path
    return TreeScan(phandles=PhandleIndex(MappingProxyType(entries)), nodes=tuple(nodes))


def build_index(source: NodeSource) -> PhandleIndex:
    """Build the phandle index of a tree."""
    return scan_tree(source).phandles


def resolve(index: PhandleIndex, value: int) -> Optional[str]:
    """Look up a phandle; a miss returns None."""
    return index.resolve(value)
