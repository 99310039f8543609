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
Shared output and text helpers.

This module provides the progress/error echo helpers used by the CLI and the
small text utilities (grep-style filtering, canonical hexdump) used by checks.
"""

import re
from typing import List, Sequence

import click

LOG_PREFIX = "[diag]"


def echolog(message: str, err: bool = False) -> None:
    """Print a progress line with the diagnostic prefix."""
    click.echo(f"{LOG_PREFIX} {message}", err=err)


def echo_error(message: str) -> None:
    """Print an error line to stderr."""
    click.echo(f"Error: {message}", err=True)


def echo_debug(message: str, enabled: bool) -> None:
    """Print a debug line to stderr when debugging is enabled."""
    if enabled:
        click.echo(f"DEBUG: {message}", err=True)


def grep_lines(lines: Sequence[str], pattern: str, ignore_case: bool = False,
               number: bool = False) -> List[str]:
    """
    Filter lines by a regular expression, like grep -E.

    Args:
        lines: Input lines
        pattern: Extended regular expression
        ignore_case: Match case-insensitively (grep -i)
        number: Prefix matches with their 1-based line number (grep -n)

    Returns:
        Matching lines in input order
    """
    regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    matches = []
    for lineno, line in enumerate(lines, start=1):
        if regex.search(line):
            matches.append(f"{lineno}:{line}" if number else line)
    return matches


def alternation(words: Sequence[str]) -> str:
    """Build a regex matching any of the given literal words."""
    return "|".join(re.escape(word) for word in words)


def hexdump_lines(data: bytes, limit: int = 6) -> List[str]:
    """
    Render bytes in canonical hex+ASCII form, like hexdump -C.

    Args:
        data: Raw bytes
        limit: Maximum number of lines to return

    Returns:
        Up to ``limit`` dump lines
    """
    lines = []
    for offset in range(0, len(data), 16):
        if len(lines) >= limit:
            break
        chunk = data[offset:offset + 16]
        hex_bytes = [f"{b:02x}" for b in chunk]
        left = " ".join(hex_bytes[:8])
        right = " ".join(hex_bytes[8:])
        ascii_part = "".join(chr(b) if 0x20 <= b < 0x7f else "." for b in chunk)
        lines.append(f"{offset:08x}  {left:<23}  {right:<23}  |{ascii_part}|")
    return lines
