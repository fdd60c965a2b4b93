# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Two-phase stable sort: element-major → 2D-mesh-layer-major node order
──────────────────────────────────────────────────────────────────────────────
GeoFLOW writes nodes element by element; inside an element they run
sub-layer (z reference direction), then row, then column. Output formats
want each horizontal 2D mesh layer contiguous instead.

Phase 1 sorts by element layer ID. Phase 2 sorts by a computed key, one per
(element layer, sub-layer, element) triple, shared by the nX×nY nodes of
that triple's block. Both sorts must be stable: ties keep their relative
order, which is what keeps each element's internal node grid intact.

"""

from __future__ import annotations

import logging
import time

import numpy as np

from .errors import ConsistencyError
from .header import HeaderGeometry
from .mesh import MeshStore

logger = logging.getLogger("geoflow")


def layer_sort_keys(geometry: HeaderGeometry, element_layer_ids: np.ndarray, file_positions: np.ndarray) -> np.ndarray:
    """
    2D-mesh-layer key of every node.

    Walking element layers, then sub-layers, then the elements of the layer
    (in solver order), the block at (layer, sub, elem) gets
    key = (layer * n_sub_layers + sub) * n_elems_per_layer + elem.

    Keys are derived from each node's file position and element layer, not
    from its current index, so assigning them again after a sort gives the
    same keys.
    """
    block = geometry.n_nodes_per_2d_elem
    per_elem = geometry.n_nodes_per_elem

    file_positions = np.asarray(file_positions, dtype=np.int64)
    elem_no = file_positions // per_elem
    sub = (file_positions % per_elem) // block

    # Dense 0..L-1 layer index, whatever the ID values are.
    _, layer = np.unique(element_layer_ids, return_inverse=True)
    layer = layer.reshape(-1).astype(np.int64)

    # Rank of each element among the elements of its layer, in solver order.
    n_elems = int(elem_no.max()) + 1 if elem_no.size else 0
    elem_layer = np.zeros(n_elems, dtype=np.int64)
    elem_layer[elem_no] = layer
    present = np.zeros(n_elems, dtype=bool)
    present[elem_no] = True
    elems = np.flatnonzero(present)
    by_layer = elems[np.argsort(elem_layer[elems], kind="stable")]
    sorted_layers = elem_layer[by_layer]
    first = np.searchsorted(sorted_layers, sorted_layers, side="left")
    rank = np.zeros(n_elems, dtype=np.int64)
    rank[by_layer] = np.arange(len(by_layer), dtype=np.int64) - first

    if rank.size and rank.max() >= geometry.n_elems_per_layer:
        raise ConsistencyError(
            f"An element layer holds {int(rank.max()) + 1} elements; the header geometry allows "
            f"{geometry.n_elems_per_layer} per layer",
            stage="sort",
        )

    return (layer * geometry.n_sub_layers + sub) * geometry.n_elems_per_layer + rank[elem_no]


class MeshReorganizer:
    """
    Reorders a MeshStore's nodes in place.

    Args:
        store: node collection to reorder
        geometry: header geometry the nodes were read with
    """

    def __init__(self, store: MeshStore, geometry: HeaderGeometry):
        self.store = store
        self.geometry = geometry

    def _check_node_count(self) -> None:
        if self.store.n_nodes != self.geometry.n_nodes:
            raise ConsistencyError(
                f"Mesh has {self.store.n_nodes} nodes but the header describes {self.geometry.n_nodes}",
                stage="sort",
            )

    def sort_by_element_layer(self) -> None:
        """Phase 1: stable sort by element layer ID."""
        order = np.argsort(self.store.element_layer_ids, kind="stable")
        self.store.permute(order)

    def assign_layer_sort_keys(self) -> None:
        """Compute the 2D-mesh-layer key of every node."""
        self._check_node_count()
        self.store.sort_keys[:] = layer_sort_keys(
            self.geometry, self.store.element_layer_ids, self.store.order
        )

    def sort_by_mesh_layer(self) -> None:
        """Phase 2: stable sort by the assigned 2D-mesh-layer key."""
        order = np.argsort(self.store.sort_keys, kind="stable")
        self.store.permute(order)

    def reorganize(self) -> None:
        """Run phase 1, key assignment and phase 2, in that order."""
        self._check_node_count()
        t0 = time.time()

        self.sort_by_element_layer()
        self.assign_layer_sort_keys()
        self.sort_by_mesh_layer()

        logger.debug(
            "Reorganized %d nodes into %d layers of %d nodes in %.2fs",
            self.store.n_nodes,
            self.geometry.n_2d_layers,
            self.geometry.n_nodes_per_2d_layer,
            time.time() - t0,
        )
