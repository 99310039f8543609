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
Diagnostic configuration.

Defaults describe a Raspberry Pi with an EK79007AD3 panel on the DSI port.
The CLI overrides individual fields.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class DiagnosticConfig:
    """
    Settings shared by every check in the battery.

    Attributes:
        driver: Panel driver name as it appears in the kernel log
        dt_root: Directory exposing the live device tree
        drm_class_dir: Directory holding DRM connector entries
        modules_root: Root of the installed kernel modules tree
        pins: GPIO numbers queried through pinctrl (reset/enable)
        log_tail: Number of general kernel log matches to keep
    """

    DEFAULT_DRIVER = "panel-ek79007ad3"
    DEFAULT_DT_ROOT = "/proc/device-tree"
    DEFAULT_DRM_CLASS_DIR = "/sys/class/drm"
    DEFAULT_MODULES_ROOT = "/lib/modules"

    driver: str = DEFAULT_DRIVER
    dt_root: str = DEFAULT_DT_ROOT
    drm_class_dir: str = DEFAULT_DRM_CLASS_DIR
    modules_root: str = DEFAULT_MODULES_ROOT
    pins: Tuple[int, ...] = (17, 27)
    log_tail: int = 200
    connector_pattern: str = "*-DSI-*"
    panel_pattern: str = "panel*"
    panel_properties: Tuple[str, ...] = (
        "compatible", "model", "name", "status", "reg",
        "enable-gpios", "reset-gpios", "pinctrl-0", "pinctrl-1",
    )
    subsystems: Tuple[str, ...] = ("vc4", "drm", "mipi", "dsi")
    lifecycle_phrases: Tuple[str, ...] = (
        "Exit sleep mode sent",
        "Failed to exit sleep mode",
        "Display ON sent",
        "Pixel format set to",
        "Init sequence SUCCESS",
        "Calling bridge pre_enable",
        "Bridge pre_enable done",
    )
    init_phrase: str = "Init sequence SUCCESS"
    dsi_error_tokens: Tuple[str, ...] = (
        "HSTX_TO", "PR_TO", "LPRX_TO", "ERR_CONTROL", "ERR_CONT_LP",
        "ERR_SYNC_ESC", "ETIMEDOUT", "TA_TO",
    )

    @property
    def module_name(self) -> str:
        """Loaded module name, as listed by lsmod."""
        return self.driver.replace('-', '_')

    @property
    def driver_token(self) -> str:
        """Short chip token used to filter module file listings."""
        return self.driver.split("-", 1)[-1]

    def panel_module_dir(self, release: str) -> str:
        """Directory holding panel modules for a kernel release."""
        return f"{self.modules_root}/{release}/kernel/drivers/gpu/drm/panel"
