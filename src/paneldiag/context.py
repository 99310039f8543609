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
Execution contexts for the check battery.

The battery only uses the primitives defined by ExecutionContext: run a command,
probe for a tool, read a file, list a directory. LocalContext satisfies them on
this host. RemoteContext gathers everything in one SSH round trip into a
SnapshotContext, so local and remote runs share every line of check code.

Snapshot archive layout (tar stream written by the remote collector):

    cmd/<n>.argv   command line, arguments joined by single spaces
    cmd/<n>.out    captured stdout
    cmd/<n>.rc     exit status, 127 when the tool is missing
    fs/<path>      captured files and directories, at their absolute path
"""

import errno
import io
import os
import posixpath
import shlex
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .config import DiagnosticConfig
from .exceptions import CommandUnavailableError, ConnectivityError, PanelDiagError, SnapshotError
from .models import CommandResult

MISSING_TOOL_RC = 127


class ExecutionContext:
    """Primitive reads used by the diagnostic checks."""

    name = "context"

    def run(self, argv: List[str]) -> CommandResult:
        """
        Run a command to completion.

        Raises:
            CommandUnavailableError: If the tool is missing or does not finish
        """
        raise NotImplementedError

    def which(self, tool: str) -> bool:
        """Whether a command-line tool is available."""
        raise NotImplementedError

    def read_bytes(self, path: str) -> bytes:
        """Read a file. Raises OSError if it cannot be read."""
        raise NotImplementedError

    def listdir(self, path: str) -> List[str]:
        """List a directory. Raises OSError if it does not exist."""
        raise NotImplementedError

    def is_dir(self, path: str) -> bool:
        raise NotImplementedError

    def is_file(self, path: str) -> bool:
        raise NotImplementedError

    def read_text(self, path: str) -> str:
        """Read a small text file such as a sysfs attribute, stripped."""
        return self.read_bytes(path).decode("utf-8", errors="replace").strip()


class LocalContext(ExecutionContext):
    """Run commands and read files on this host."""

    name = "local"

    def __init__(self, timeout: float = 30):
        self.timeout = timeout

    def run(self, argv: List[str]) -> CommandResult:
        if not self.which(argv[0]):
            raise CommandUnavailableError(f"{argv[0]} not found")
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise CommandUnavailableError(f"{argv[0]} timed out after {self.timeout}s")
        except OSError as e:
            raise CommandUnavailableError(f"{argv[0]} could not be started: {e}")
        return CommandResult(returncode=result.returncode, stdout=result.stdout)

    def which(self, tool: str) -> bool:
        return shutil.which(tool) is not None

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def listdir(self, path: str) -> List[str]:
        return os.listdir(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)


def _norm(path: str) -> str:
    return posixpath.normpath("/" + path.lstrip("/"))


class SnapshotContext(ExecutionContext):
    """
    Answer primitives from captured files and command outputs.

    Attributes:
        files: Absolute path -> file content
        dirs: Absolute directory paths, parents are added automatically
        commands: Space-joined argv -> captured result
    """

    name = "snapshot"

    def __init__(
        self,
        files: Optional[Dict[str, bytes]] = None,
        dirs: Optional[Iterable[str]] = None,
        commands: Optional[Dict[str, CommandResult]] = None
    ):
        self.files = {_norm(p): bytes(v) for p, v in (files or {}).items()}
        self.commands = dict(commands or {})
        self.dirs: Set[str] = {"/"}
        self._children: Dict[str, Set[str]] = {"/": set()}

        for path in [_norm(d) for d in (dirs or ())] + list(self.files):
            is_file = path in self.files
            while path != "/":
                parent = posixpath.dirname(path)
                self._children.setdefault(parent, set()).add(posixpath.basename(path))
                if not is_file:
                    self.dirs.add(path)
                    self._children.setdefault(path, set())
                is_file = False
                path = parent

    @classmethod
    def from_tar(cls, data: bytes) -> "SnapshotContext":
        """
        Build a snapshot from a collector tar stream.

        Raises:
            SnapshotError: If the archive cannot be read
        """
        files: Dict[str, bytes] = {}
        dirs: List[str] = []
        parts: Dict[str, Dict[str, bytes]] = {}

        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
                for member in tar:
                    name = member.name
                    if name.startswith("./"):
                        name = name[2:]
                    area, _, rest = name.partition("/")
                    if area == "fs" and rest:
                        if member.isdir():
                            dirs.append("/" + rest)
                        elif member.isfile():
                            files["/" + rest] = tar.extractfile(member).read()
                    elif area == "cmd" and rest and member.isfile():
                        number, _, kind = rest.partition(".")
                        parts.setdefault(number, {})[kind] = tar.extractfile(member).read()
        except (tarfile.TarError, EOFError) as e:
            raise SnapshotError(f"Failed to read snapshot archive: {e}")

        commands = {}
        for number in sorted(parts, key=lambda n: int(n) if n.isdigit() else 0):
            entry = parts[number]
            if "argv" not in entry:
                continue
            try:
                rc = int(entry.get("rc", b"0").strip() or 0)
            except ValueError:
                rc = 0
            commands[entry["argv"].decode("utf-8", errors="replace")] = CommandResult(
                returncode=rc,
                stdout=entry.get("out", b"").decode("utf-8", errors="replace")
            )

        return cls(files=files, dirs=dirs, commands=commands)

    def run(self, argv: List[str]) -> CommandResult:
        key = " ".join(argv)
        result = self.commands.get(key)
        if result is None:
            raise CommandUnavailableError(f"'{key}' was not captured")
        if result.returncode == MISSING_TOOL_RC:
            raise CommandUnavailableError(f"{argv[0]} not found")
        return result

    def which(self, tool: str) -> bool:
        return any(
            key.split(" ", 1)[0] == tool and result.returncode != MISSING_TOOL_RC
            for key, result in self.commands.items()
        )

    def read_bytes(self, path: str) -> bytes:
        path = _norm(path)
        if path in self.files:
            return self.files[path]
        if path in self.dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)

    def listdir(self, path: str) -> List[str]:
        path = _norm(path)
        if path not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        return sorted(self._children.get(path, ()))

    def is_dir(self, path: str) -> bool:
        return _norm(path) in self.dirs

    def is_file(self, path: str) -> bool:
        return _norm(path) in self.files


COLLECT_SCRIPT = """\
set -u
out=$(mktemp -d)
trap 'rm -rf "$out"' EXIT
mkdir -p "$out/cmd" "$out/fs"
n=0
capture() {{
  n=$((n + 1))
  printf '%s' "$*" > "$out/cmd/$n.argv"
  if command -v "$1" >/dev/null 2>&1; then
    "$@" > "$out/cmd/$n.out" 2>/dev/null
    echo $? > "$out/cmd/$n.rc"
  else
    : > "$out/cmd/$n.out"
    echo {missing} > "$out/cmd/$n.rc"
  fi
}}
capture lsmod
capture dmesg
capture uname -r
rel=$(uname -r)
capture ls -l {modules_root}/"$rel"/kernel/drivers/gpu/drm/panel
{pinctrl}
if [ -d {dt_root} ]; then
  mkdir -p "$out/fs"{dt_root}
  cp -rL {dt_root}/. "$out/fs"{dt_root}/ 2>/dev/null
fi
mkdir -p "$out/fs"{drm}
for c in {drm}/{pattern}; do
  [ -e "$c" ] || continue
  mkdir -p "$out/fs$c"
  if [ -f "$c/status" ]; then
    cat "$c/status" > "$out/fs$c/status" 2>/dev/null
  fi
done
tar -C "$out" -cf - cmd fs
"""


def collect_script(config: DiagnosticConfig) -> str:
    """Shell script capturing everything the battery reads, as a tar stream."""
    pinctrl = "\n".join(f"capture pinctrl get {int(pin)}" for pin in config.pins)
    return COLLECT_SCRIPT.format(
        missing=MISSING_TOOL_RC,
        modules_root=shlex.quote(config.modules_root),
        pinctrl=pinctrl,
        dt_root=shlex.quote(config.dt_root.rstrip("/")),
        drm=shlex.quote(config.drm_class_dir.rstrip("/")),
        pattern=config.connector_pattern,
    )


class RemoteContext(ExecutionContext):
    """
    Run the battery against one remote host reached over SSH.

    ``connect()`` checks reachability with a short probe, then collects a
    snapshot with one privileged (``sudo -i``) call. All primitives are then
    answered from that snapshot.
    """

    name = "remote"

    DEFAULT_CONNECT_TIMEOUT = 5
    DEFAULT_COLLECT_TIMEOUT = 120

    def __init__(
        self,
        host: str,
        config: Optional[DiagnosticConfig] = None,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        collect_timeout: int = DEFAULT_COLLECT_TIMEOUT,
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None
    ):
        self.host = host
        self.config = config or DiagnosticConfig()
        self.connect_timeout = connect_timeout
        self.collect_timeout = collect_timeout
        self.runner = runner or subprocess.run
        self.snapshot: Optional[SnapshotContext] = None
        self.returncode: Optional[int] = None

    def probe(self) -> None:
        """
        Verify the host is reachable without prompting.

        Raises:
            ConnectivityError: If SSH fails or does not answer in time
        """
        argv = [
            "ssh", "-o", "BatchMode=yes", "-o", f"ConnectTimeout={self.connect_timeout}",
            self.host, "exit",
        ]
        try:
            result = self.runner(
                argv,
                capture_output=True,
                timeout=self.connect_timeout * 2,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise ConnectivityError(f"SSH connection to {self.host} timed out")
        except OSError as e:
            raise ConnectivityError(f"Cannot run ssh: {e}")
        if result.returncode != 0:
            raise ConnectivityError(
                f"SSH connection to {self.host} failed (exit code {result.returncode})"
            )

    def collect(self) -> Tuple[SnapshotContext, int]:
        """
        Capture the remote state in one SSH round trip.

        Returns:
            Tuple of (snapshot, remote exit status)

        Raises:
            SnapshotError: If the collection produced no readable archive
        """
        argv = ["ssh", self.host, "sudo -i -- bash -s"]
        try:
            result = self.runner(
                argv,
                input=collect_script(self.config).encode(),
                capture_output=True,
                timeout=self.collect_timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise SnapshotError(f"Remote collection on {self.host} timed out")
        except OSError as e:
            raise SnapshotError(f"Cannot run ssh: {e}")
        if not result.stdout:
            raise SnapshotError(
                f"Remote collection on {self.host} produced no output (exit code {result.returncode})"
            )
        return SnapshotContext.from_tar(result.stdout), result.returncode

    def connect(self) -> int:
        """Probe the host, then collect its snapshot. Returns the remote exit status."""
        self.probe()
        self.snapshot, self.returncode = self.collect()
        return self.returncode

    def _require_snapshot(self) -> SnapshotContext:
        if self.snapshot is None:
            raise PanelDiagError(f"Remote context for {self.host} is not connected")
        return self.snapshot

    def run(self, argv: List[str]) -> CommandResult:
        return self._require_snapshot().run(argv)

    def which(self, tool: str) -> bool:
        return self._require_snapshot().which(tool)

    def read_bytes(self, path: str) -> bytes:
        return self._require_snapshot().read_bytes(path)

    def listdir(self, path: str) -> List[str]:
        return self._require_snapshot().listdir(path)

    def is_dir(self, path: str) -> bool:
        return self._require_snapshot().is_dir(path)

    def is_file(self, path: str) -> bool:
        return self._require_snapshot().is_file(path)
