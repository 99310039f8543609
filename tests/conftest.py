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
Pytest configuration and fixtures for paneldiag tests.
"""

import io
import struct
import sys
import tarfile
from pathlib import Path

import libfdt
import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from paneldiag.models import CommandResult


def cells(*values):
    """Encode values as big-endian 32-bit cells."""
    return struct.pack('>' + 'I' * len(values), *values)


GPIO_CONTROLLER = "/soc/gpio@7e200000"
PANEL_NODE = "/soc/dsi@7e700000/panel@0"

LSMOD_OUTPUT = """\
Module                  Size  Used by
panel_ek79007ad3       16384  1
vc4                   303104  4
drm_display_helper     16384  1 vc4
snd_soc_core          245760  2 vc4
"""

DMESG_OUTPUT = """\
[    0.000000] Booting Linux on physical CPU 0x0
[    3.120000] vc4-drm gpu: bound fe700000.dsi (ops vc4_dsi_ops [vc4])
[    3.130000] panel-ek79007ad3 fe700000.dsi.0: Calling bridge pre_enable
[    3.140000] panel-ek79007ad3 fe700000.dsi.0: Exit sleep mode sent
[    3.150000] panel-ek79007ad3 fe700000.dsi.0: Display ON sent
[    3.160000] panel-ek79007ad3 fe700000.dsi.0: Init sequence SUCCESS
[    3.200000] vc4_dsi fe700000.dsi: DSI1 transfer timeout: HSTX_TO
"""


@pytest.fixture
def panel_tree():
    """Device tree (relative paths) with a panel node and a GPIO controller."""
    return {
        "/compatible": b"raspberrypi,4-model-b\0brcm,bcm2711\0",
        "/soc/gpio@7e200000/phandle": cells(5),
        "/soc/gpio@7e200000/compatible": b"brcm,bcm2711-gpio\0",
        "/soc/gpio@7e200000/dsi_pins/phandle": cells(9),
        "/soc/dsi@7e700000/reg": cells(0x7e700000, 0x200),
        "/soc/dsi@7e700000/panel@0/compatible": b"raspberrypi,ek79007ad3\0",
        "/soc/dsi@7e700000/panel@0/status": b"okay\0",
        "/soc/dsi@7e700000/panel@0/reg": cells(0),
        "/soc/dsi@7e700000/panel@0/enable-gpios": cells(5, 17, 0),
        "/soc/dsi@7e700000/panel@0/reset-gpios": cells(5, 27, 1),
        "/soc/dsi@7e700000/panel@0/pinctrl-0": cells(9),
    }


@pytest.fixture
def write_tree():
    """Return a function writing a {relative path: bytes} tree under a directory."""
    def _write(root: Path, tree):
        for rel, data in tree.items():
            target = root / rel.lstrip("/")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        root.mkdir(parents=True, exist_ok=True)
        return root
    return _write


@pytest.fixture
def snapshot_files(panel_tree):
    """Return a function placing a relative tree under /proc/device-tree."""
    def _files(tree=None, statuses=None):
        tree = panel_tree if tree is None else tree
        files = {f"/proc/device-tree{rel}": data for rel, data in tree.items()}
        for connector, status in (statuses or {}).items():
            if status is not None:
                files[f"/sys/class/drm/{connector}/status"] = status
        return files
    return _files


@pytest.fixture
def standard_commands():
    """Command captures of a healthy host."""
    return {
        "lsmod": CommandResult(0, LSMOD_OUTPUT),
        "dmesg": CommandResult(0, DMESG_OUTPUT),
        "uname -r": CommandResult(0, "6.6.31-v8+\n"),
        "ls -l /lib/modules/6.6.31-v8+/kernel/drivers/gpu/drm/panel": CommandResult(
            0,
            "total 64\n"
            "-rw-r--r-- 1 root root 20480 Jun  1 10:00 panel-ek79007ad3.ko\n"
            "-rw-r--r-- 1 root root  8120 Jun  1 10:00 panel-ek79007ad3.ko.xz\n"
            "-rw-r--r-- 1 root root  9000 Jun  1 10:00 panel-simple.ko.xz\n"
        ),
        "pinctrl get 17": CommandResult(0, "17: op dh pn | hi // GPIO17 = output\n"),
        "pinctrl get 27": CommandResult(0, "27: op dl pn | lo // GPIO27 = output\n"),
    }


@pytest.fixture
def snapshot_archive():
    """Return a function building a collector tar stream."""
    def _archive(files=None, dirs=(), commands=None):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            def add(name, data):
                info = tarfile.TarInfo(name)
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))

            for path in dirs:
                info = tarfile.TarInfo("fs" + path)
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
            for path, data in (files or {}).items():
                add("fs" + path, data)
            for n, (argv, result) in enumerate((commands or {}).items(), start=1):
                add(f"cmd/{n}.argv", argv.encode())
                add(f"cmd/{n}.out", result.stdout.encode())
                add(f"cmd/{n}.rc", f"{result.returncode}\n".encode())
        return buf.getvalue()
    return _archive


@pytest.fixture
def panel_dtb():
    """Flattened blob with a GPIO controller (phandle 5) and a panel node."""
    fdt_sw = libfdt.FdtSw()
    fdt_sw.finish_reservemap()
    fdt_sw.begin_node('')
    fdt_sw.property_string('compatible', 'raspberrypi,4-model-b')
    fdt_sw.begin_node('soc')
    fdt_sw.begin_node('dsi@7e700000')
    fdt_sw.begin_node('panel@0')
    fdt_sw.property_string('status', 'okay')
    fdt_sw.property('enable-gpios', cells(5, 17, 0))
    fdt_sw.end_node()  # End panel@0
    fdt_sw.end_node()  # End dsi
    fdt_sw.begin_node('gpio@7e200000')
    fdt_sw.property_u32('phandle', 5)
    fdt_sw.end_node()
    fdt_sw.end_node()  # End soc
    fdt_sw.end_node()

    dtb = fdt_sw.as_fdt()
    dtb.pack()
    return bytes(dtb.as_bytearray())
