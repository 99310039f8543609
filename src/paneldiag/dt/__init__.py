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
Device tree decoding: cells, phandles, property classification and specifiers.
"""

from .cells import decode_cells, decode_cell, CellDecoder, DEFAULT_DECODERS
from .classify import classify
from .phandle import PhandleIndex, TreeScan, build_index, resolve, scan_tree
from .source import NodeSource, DirectoryNodeSource, FdtNodeSource, read_node
from .specifiers import (
    decode_gpios,
    decode_pinctrl,
    format_gpio,
    format_pinctrl,
    render_property,
)

__all__ = [
    'decode_cells',
    'decode_cell',
    'CellDecoder',
    'DEFAULT_DECODERS',
    'classify',
    'PhandleIndex',
    'TreeScan',
    'build_index',
    'resolve',
    'scan_tree',
    'NodeSource',
    'DirectoryNodeSource',
    'FdtNodeSource',
    'read_node',
    'decode_gpios',
    'decode_pinctrl',
    'format_gpio',
    'format_pinctrl',
    'render_property',
]
