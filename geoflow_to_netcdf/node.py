# -*- coding: utf-8 -*-

"""

Per-node record and the variable name → slot table.

A node carries one float slot per job variable (grid coordinates first, then
the field roots), the element layer it came from, and the 2D-mesh-layer sort
key assigned while reorganizing. Slot indices come from a `VariableTable`
built once per conversion job and passed to whoever needs to resolve names.

"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np

from .coords import SPHERICAL
from .errors import ConfigError, IndexOutOfRangeError, UnknownVariableError

CARTESIAN_VARIABLES = ("x", "y", "z")
SPHERICAL_VARIABLES = ("lat", "lon", "radius")

NO_SORT_KEY = -1


class VariableTable:
    """
    Ordered, immutable mapping of variable names to slot indices.

    Args:
        names: variable names in slot order; duplicates are rejected.
    """

    def __init__(self, names: Iterable[str]):
        self._names: List[str] = []
        self._index: Dict[str, int] = {}
        for name in names:
            if name in self._index:
                raise ConfigError(f"Duplicate variable name '{name}'")
            self._index[name] = len(self._names)
            self._names.append(name)

    @classmethod
    def for_job(cls, field_roots: Sequence[str], coordinates: str = SPHERICAL) -> "VariableTable":
        """Grid variables for the coordinate mode followed by every field root."""
        grid = list(CARTESIAN_VARIABLES)
        if coordinates == SPHERICAL:
            grid += SPHERICAL_VARIABLES
        return cls(grid + list(field_roots))

    def index(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownVariableError(
                f"Unknown variable '{name}'; known variables: {', '.join(self._names)}"
            ) from None

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __repr__(self) -> str:
        return f"VariableTable({self._names!r})"


class MeshNode:
    """
    Slot array + element layer ID + sort key of one mesh node.

    Nodes handed out by a MeshStore are views: slot writes and sort key
    assignments go straight into the store's arrays.
    """

    __slots__ = ("_slots", "_element_layer_id", "_keys", "_row")

    def __init__(self, slots: np.ndarray, element_layer_id: int,
                 keys: Optional[np.ndarray] = None, row: int = 0):
        self._slots = slots
        self._element_layer_id = int(element_layer_id)
        if keys is None:
            keys = np.full(1, NO_SORT_KEY, dtype=np.int64)
            row = 0
        self._keys = keys
        self._row = row

    @classmethod
    def create(cls, n_slots: int, element_layer_id: int) -> "MeshNode":
        """Standalone node with `n_slots` zeroed slots."""
        return cls(np.zeros(n_slots, dtype=np.float64), element_layer_id)

    @property
    def n_slots(self) -> int:
        return len(self._slots)

    @property
    def element_layer_id(self) -> int:
        return self._element_layer_id

    @property
    def sort_key(self) -> Optional[int]:
        """2D-mesh-layer key; None until the layer sort has assigned one."""
        key = int(self._keys[self._row])
        return None if key == NO_SORT_KEY else key

    @sort_key.setter
    def sort_key(self, key: int) -> None:
        self._keys[self._row] = key

    def var(self, index: int, value: Optional[float] = None) -> float:
        """
        Read slot `index`, or write `value` into it and return the value.

        Raises:
            IndexOutOfRangeError: index outside [0, n_slots).
        """
        if not 0 <= index < len(self._slots):
            raise IndexOutOfRangeError(
                f"Variable slot {index} out of range for node with {len(self._slots)} slots"
            )
        if value is not None:
            self._slots[index] = value
        return float(self._slots[index])

    def position(self, table: VariableTable) -> tuple:
        return tuple(self.var(table.index(n)) for n in CARTESIAN_VARIABLES)

    def __eq__(self, other) -> bool:
        if not isinstance(other, MeshNode):
            return NotImplemented
        return self._element_layer_id == other._element_layer_id

    def __lt__(self, other: "MeshNode") -> bool:
        if not isinstance(other, MeshNode):
            return NotImplemented
        return self._element_layer_id < other._element_layer_id

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"MeshNode(elem_layer={self._element_layer_id}, sort_key={self.sort_key}, "
            f"slots={np.array2string(np.asarray(self._slots), precision=6)})"
        )
