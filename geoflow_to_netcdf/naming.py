# -*- coding: utf-8 -*-

"""

GeoFLOW file names: `root.timestep.ext`, e.g. `dtotal.000100.out`.

Roots may themselves contain dots, so a name is never split blindly; the
root is matched against the list of roots the job knows about.

"""

from __future__ import annotations

import os
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import FormatError, GridIOError, UnknownVariableError

DEFAULT_EXTENSION = "out"
DEFAULT_TIMESTEP_WIDTH = 6

_TIMESTEP_RE = re.compile(r"^(\d+)(?:\.(.*))?$")


def field_filename(root: str, timestep: int, ext: str = DEFAULT_EXTENSION,
                   width: int = DEFAULT_TIMESTEP_WIDTH) -> str:
    """'dtotal', 100 → 'dtotal.000100.out'"""
    name = f"{root}.{timestep:0{width}d}"
    return f"{name}.{ext}" if ext else name


def split_filename(name: str, known_roots: Iterable[str]) -> Tuple[str, int]:
    """
    Split a file name into (root, timestep).

    The longest known root followed by '.' and a numeric timestep wins, so
    'a.b.000010.out' resolves to root 'a.b' even when 'a' is also known.

    Raises:
        UnknownVariableError: no known root matches the name.
        FormatError: the part after the root is not a numeric timestep.
    """
    base = os.path.basename(name)
    candidates = sorted((r for r in known_roots if base.startswith(r + ".")), key=len, reverse=True)
    if not candidates:
        raise UnknownVariableError(f"File name '{base}' does not start with a known variable root")

    for root in candidates:
        m = _TIMESTEP_RE.match(base[len(root) + 1:])
        if m:
            return root, int(m.group(1))

    raise FormatError(f"No numeric timestep after root '{candidates[0]}' in '{base}'")


def strip_timestep(name: str, known_roots: Iterable[str]) -> str:
    """Variable root of a `root.timestep.ext` file name."""
    return split_filename(name, known_roots)[0]


def timestep_values(start: int = 0, count: int = 1, stride: int = 1) -> List[int]:
    """Timestep numbers of a job: start, start+stride, ... (count values)."""
    if count < 0:
        raise ValueError(f"Timestep count must be >= 0, got {count}")
    if stride < 1:
        raise ValueError(f"Timestep stride must be >= 1, got {stride}")
    return [start + i * stride for i in range(count)]


def discover_variables(directory: str, ext: str = DEFAULT_EXTENSION,
                       roots: Optional[Iterable[str]] = None) -> Dict[str, List[int]]:
    """
    Scan a directory for `root.timestep.ext` files.

    Names starting with one of `roots` are split with `split_filename`.
    Any other name is split at its last purely numeric dotted component,
    which is the best that can be done without a list of known roots.

    Returns:
        mapping root → sorted timesteps found

    Raises:
        GridIOError: the directory cannot be listed.
    """
    roots = list(roots or [])
    try:
        entries = sorted(os.listdir(directory))
    except OSError as e:
        raise GridIOError(f"Cannot list input directory: {e.strerror or e}", path=str(directory)) from e

    found: Dict[str, List[int]] = {}
    suffix = f".{ext}" if ext else ""
    for entry in entries:
        if suffix and not entry.endswith(suffix):
            continue
        try:
            root, step = split_filename(entry, roots)
        except (UnknownVariableError, FormatError):
            stem = entry[: len(entry) - len(suffix)] if suffix else entry
            root, dot, tail = stem.rpartition(".")
            if not dot or not root or not tail.isdigit():
                continue
            step = int(tail)
        found.setdefault(root, []).append(step)
    return {root: sorted(steps) for root, steps in found.items()}


def parse_timesteps(arg: str) -> List[int]:
    """
    Parse timestep selections like '5', '0,10,20' or '0-100:10'.

    A range is inclusive; ':stride' is optional.
    """
    s = arg.strip()
    if not s:
        raise ValueError("Empty timestep selection")

    if "-" in s and "," in s:
        raise ValueError("Do not mix ranges and lists; use either 'a-b[:stride]' or 'a,b,c'.")

    if "-" in s:
        span, _, stride_s = s.partition(":")
        try:
            start, end = map(int, span.split("-", 1))
            stride = int(stride_s) if stride_s else 1
        except ValueError:
            raise ValueError("Invalid range; use 'start-end' or 'start-end:stride'.") from None
        if end < start:
            raise ValueError("Range end must be >= start.")
        if stride < 1:
            raise ValueError("Range stride must be >= 1.")
        return list(range(start, end + 1, stride))

    if "," in s:
        steps = []
        for x in s.split(","):
            x = x.strip()
            if x == "":
                continue
            try:
                steps.append(int(x))
            except ValueError:
                raise ValueError(f"Invalid integer in list: '{x}'") from None
        return steps

    try:
        return [int(s)]
    except ValueError:
        raise ValueError("Timestep must be an integer.") from None


def known_roots(grid_roots: Sequence[str], field_roots: Sequence[str]) -> List[str]:
    return list(grid_roots) + [r for r in field_roots if r not in grid_roots]
