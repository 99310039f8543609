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
Read-only device tree node sources.

A node source exposes three operations: list the children of a node, list its
properties and read a property's raw bytes. Node paths are absolute, with "/"
as the root, regardless of where the tree is actually stored.
"""

import posixpath
from typing import Iterable, List, Optional

import libfdt

from ..exceptions import ParseError
from ..models import DeviceNode, Property


class NodeSource:
    """Interface for a hierarchical device tree namespace."""

    def children(self, path: str) -> List[str]:
        """Names of the child nodes of ``path``."""
        raise NotImplementedError

    def properties(self, path: str) -> List[str]:
        """Names of the properties of ``path``."""
        raise NotImplementedError

    def read(self, path: str, name: str) -> Optional[bytes]:
        """Raw bytes of a property, or None if it does not exist."""
        raise NotImplementedError


def join_path(parent: str, child: str) -> str:
    """Join a node path and a child name."""
    return posixpath.join(parent, child) if parent != "/" else f"/{child}"


def node_name(path: str) -> str:
    """Last component of a node path ("/" for the root)."""
    return path.rstrip("/").rsplit("/", 1)[-1] or "/"


def read_node(source: NodeSource, path: str, names: Iterable[str]) -> DeviceNode:
    """
    Read the given properties of a node.

    Args:
        source: Node source to read from
        path: Node path
        names: Property names of interest; absent ones are skipped

    Returns:
        DeviceNode carrying the present properties in ``names`` order
    """
    present = set(source.properties(path))
    props = []
    for name in names:
        if name not in present:
            continue
        value = source.read(path, name)
        if value is not None:
            props.append(Property(name=name, value=value))
    return DeviceNode(path=path, properties=tuple(props))


class DirectoryNodeSource(NodeSource):
    """
    Device tree exposed as directories and files (/proc/device-tree).

    All filesystem access goes through an execution context, so the same source
    works on a live host or on a captured snapshot.
    """

    def __init__(self, context, root: str):
        self.context = context
        self.root = root.rstrip("/") or "/"

    def _fs_path(self, path: str) -> str:
        return self.root if path == "/" else self.root + path

    def _entries(self, path: str) -> List[str]:
        try:
            return sorted(self.context.listdir(self._fs_path(path)))
        except OSError:
            return []

    def children(self, path: str) -> List[str]:
        base = self._fs_path(path)
        return [e for e in self._entries(path) if self.context.is_dir(posixpath.join(base, e))]

    def properties(self, path: str) -> List[str]:
        base = self._fs_path(path)
        return [e for e in self._entries(path) if self.context.is_file(posixpath.join(base, e))]

    def read(self, path: str, name: str) -> Optional[bytes]:
        try:
            return self.context.read_bytes(posixpath.join(self._fs_path(path), name))
        except OSError:
            return None


class FdtNodeSource(NodeSource):
    """
    Device tree read from a flattened blob (DTB, /sys/firmware/fdt).

    Nodes without an explicit ``name`` property get one synthesized from the
    node name without its unit address, as the kernel does for /proc/device-tree.
    """

    def __init__(self, blob: bytes):
        try:
            self.fdt = libfdt.Fdt(bytes(blob))
        except (libfdt.FdtException, TypeError, ValueError) as e:
            raise ParseError(f"Failed to parse DTB: {e}")

    @classmethod
    def from_file(cls, path: str) -> "FdtNodeSource":
        """Load a blob from a file."""
        try:
            with open(path, "rb") as f:
                return cls(f.read())
        except OSError as e:
            raise ParseError(f"Failed to read DTB file {path}: {e}")

    def _offset(self, path: str) -> Optional[int]:
        try:
            return self.fdt.path_offset(path)
        except libfdt.FdtException:
            return None

    def children(self, path: str) -> List[str]:
        offset = self._offset(path)
        if offset is None:
            return []
        names = []
        try:
            child = self.fdt.first_subnode(offset)
            while child >= 0:
                names.append(self.fdt.get_name(child))
                try:
                    child = self.fdt.next_subnode(child)
                except libfdt.FdtException:
                    break
        except libfdt.FdtException:
            pass
        return sorted(names)

    def _raw_properties(self, offset: int) -> List[str]:
        names = []
        try:
            prop = self.fdt.first_property_offset(offset)
            while prop >= 0:
                names.append(self.fdt.get_property_by_offset(prop).name)
                try:
                    prop = self.fdt.next_property_offset(prop)
                except libfdt.FdtException:
                    break
        except libfdt.FdtException:
            pass
        return names

    def properties(self, path: str) -> List[str]:
        offset = self._offset(path)
        if offset is None:
            return []
        names = self._raw_properties(offset)
        if "name" not in names:
            names.append("name")
        return sorted(names)

    def read(self, path: str, name: str) -> Optional[bytes]:
        offset = self._offset(path)
        if offset is None:
            return None
        try:
            return bytes(self.fdt.getprop(offset, name))
        except libfdt.FdtException:
            if name != "name":
                return None
            unit = node_name(path) if path != "/" else ""
            return unit.split("@", 1)[0].encode() + b"\0"
