# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
MeshStore: the node collection and its quad connectivity
──────────────────────────────────────────────────────────────────────────────
Nodes are stored column-wise (one row per node, one column per variable slot)
so that whole-mesh passes stay vectorised. `node(i)` hands out a MeshNode view
of a row when per-node access is needed.

The store remembers which file position every current row came from
(`order`), so field files read after the mesh has been reorganized land on
the right nodes. Faces hold node indices only; reordering the nodes clears
them and they have to be rebuilt.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .errors import ConsistencyError, IndexOutOfRangeError, SizeMismatchError
from .header import NODES_PER_FACE
from .node import NO_SORT_KEY, MeshNode, VariableTable
from .reader import RawSample

logger = logging.getLogger("geoflow")


@dataclass(frozen=True)
class Face:
    """Four node indices, counter-clockwise from the element's bottom-left corner."""

    indices: Tuple[int, int, int, int]

    def __post_init__(self):
        if len(self.indices) != NODES_PER_FACE:
            raise ConsistencyError(
                f"A face needs exactly {NODES_PER_FACE} node indices, got {len(self.indices)}"
            )

    def nodes(self, store: "MeshStore") -> List[MeshNode]:
        return [store.node(i) for i in self.indices]


class MeshStore:
    """
    Owns the ordered node collection and the face list of one conversion job.

    Args:
        table: variable table that sizes every node's slot array
        values: (n_nodes, len(table)) float array
        element_layer_ids: element layer of every node
    """

    def __init__(self, table: VariableTable, values: np.ndarray, element_layer_ids: np.ndarray):
        values = np.asarray(values, dtype=np.float64)
        element_layer_ids = np.asarray(element_layer_ids, dtype=np.int64)

        if values.ndim != 2 or values.shape[1] != len(table):
            raise SizeMismatchError(
                f"Node values have shape {values.shape}; expected (n_nodes, {len(table)})"
            )
        if len(element_layer_ids) != len(values):
            raise SizeMismatchError(
                f"{len(element_layer_ids)} element layer IDs for {len(values)} nodes"
            )

        self.table = table
        self._values = values
        self._element_layer_ids = element_layer_ids
        self._sort_keys = np.full(len(values), NO_SORT_KEY, dtype=np.int64)
        self._order = np.arange(len(values), dtype=np.int64)
        self._faces: List[Face] = []

    @classmethod
    def from_grid(cls, x: RawSample, y: RawSample, z: RawSample, table: VariableTable) -> "MeshStore":
        """
        Build one node per grid sample position.

        The element layer IDs are taken from the x file; all three axis files
        share the same ordering.

        Raises:
            SizeMismatchError: the three samples differ in length.
        """
        if not (len(x) == len(y) == len(z)):
            raise SizeMismatchError(
                f"Grid files differ in length: x={len(x)}, y={len(y)}, z={len(z)}"
            )

        values = np.zeros((len(x), len(table)), dtype=np.float64)
        store = cls(table, values, x.element_layer_ids)
        store.set_var("x", x.values)
        store.set_var("y", y.values)
        store.set_var("z", z.values)

        logger.debug("Built %d nodes with %d variable slots", store.n_nodes, len(table))
        return store

    # Access

    @property
    def n_nodes(self) -> int:
        return len(self._values)

    @property
    def n_slots(self) -> int:
        return self._values.shape[1]

    @property
    def element_layer_ids(self) -> np.ndarray:
        view = self._element_layer_ids.view()
        view.flags.writeable = False
        return view

    @property
    def sort_keys(self) -> np.ndarray:
        return self._sort_keys

    @property
    def order(self) -> np.ndarray:
        """File position of the node at each current index."""
        view = self._order.view()
        view.flags.writeable = False
        return view

    def __len__(self) -> int:
        return self.n_nodes

    def node(self, index: int) -> MeshNode:
        if not 0 <= index < self.n_nodes:
            raise IndexOutOfRangeError(f"Node index {index} out of range for {self.n_nodes} nodes")
        return MeshNode(self._values[index], self._element_layer_ids[index], self._sort_keys, index)

    def __iter__(self) -> Iterator[MeshNode]:
        for i in range(self.n_nodes):
            yield self.node(i)

    def var(self, name: str) -> np.ndarray:
        """Read-only column of variable `name` in current node order."""
        column = self._values[:, self.table.index(name)]
        column.flags.writeable = False
        return column

    def set_var(self, name: str, values) -> None:
        """Write a whole column, given in current node order."""
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (self.n_nodes,):
            raise SizeMismatchError(
                f"Variable '{name}' has {values.size} values but the mesh has {self.n_nodes} nodes"
            )
        self._values[:, self.table.index(name)] = values

    def read_field_to_nodes(self, name: str, sample: RawSample) -> None:
        """
        Store a field file's values into slot `name`.

        The sample is in file order and is permuted to the store's current
        node order.

        Raises:
            SizeMismatchError: sample length differs from the node count.
            UnknownVariableError: `name` is not in the variable table.
        """
        if len(sample) != self.n_nodes:
            raise SizeMismatchError(
                f"Field '{name}' has {len(sample)} values but the mesh has {self.n_nodes} nodes",
                path=sample.path,
            )
        self._values[:, self.table.index(name)] = sample.values[self._order]

    # Mutation

    def permute(self, order: np.ndarray) -> None:
        """
        Reorder nodes so that new node i is old node order[i].

        Faces are cleared because their indices refer to the old order.
        """
        order = np.asarray(order, dtype=np.int64)
        if order.shape != (self.n_nodes,):
            raise SizeMismatchError(f"Permutation of length {order.size} for {self.n_nodes} nodes")

        self._values = self._values[order]
        self._element_layer_ids = self._element_layer_ids[order]
        self._sort_keys = self._sort_keys[order]
        self._order = self._order[order]
        if self._faces:
            logger.debug("Node order changed; dropping %d faces", len(self._faces))
        self._faces = []

    # Faces

    @property
    def faces(self) -> List[Face]:
        return list(self._faces)

    @property
    def n_faces(self) -> int:
        return len(self._faces)

    def set_faces(self, faces: Sequence[Face]) -> None:
        for face in faces:
            for i in face.indices:
                if not 0 <= i < self.n_nodes:
                    raise IndexOutOfRangeError(
                        f"Face {face.indices} references node {i}; mesh has {self.n_nodes} nodes"
                    )
        self._faces = list(faces)

    def face(self, index: int) -> Face:
        if not 0 <= index < len(self._faces):
            raise IndexOutOfRangeError(f"Face index {index} out of range for {len(self._faces)} faces")
        return self._faces[index]

    def face_table(self) -> np.ndarray:
        """(n_faces, 4) array of node indices; flattened it is the runs-of-4 sequence."""
        if not self._faces:
            return np.empty((0, NODES_PER_FACE), dtype=np.int64)
        return np.asarray([f.indices for f in self._faces], dtype=np.int64)

    def layer(self, name: str, n_nodes_per_layer: int, layer_index: Optional[int] = None) -> np.ndarray:
        """
        Variable `name` reshaped to (n_layers, n_nodes_per_layer), or one row of it.

        Only meaningful after reorganizing.
        """
        column = self.var(name)
        if self.n_nodes % n_nodes_per_layer != 0:
            raise ConsistencyError(
                f"{self.n_nodes} nodes do not split into layers of {n_nodes_per_layer}"
            )
        layers = column.reshape(-1, n_nodes_per_layer)
        return layers if layer_index is None else layers[layer_index]
