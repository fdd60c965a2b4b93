# -*- coding: utf-8 -*-

"""

Quad connectivity for one 2D mesh layer.

After reorganizing, every 2D layer stores its elements one after another,
each as an nX×nY block whose local node (x, y) sits at block offset
x*nY + y. Each interior cell of the block becomes one quad, wound
counter-clockwise from its bottom-left corner:

    (x, y+1) ---- (x+1, y+1)
       |              |
    (x, y)   ---- (x+1, y)

    order: (x, y) → (x+1, y) → (x+1, y+1) → (x, y+1)

The first layer's faces are valid for every layer; other layers are obtained
by offsetting the indices by a multiple of the layer size.

"""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from .errors import ConsistencyError
from .header import NODES_PER_FACE, HeaderGeometry
from .mesh import Face, MeshStore

logger = logging.getLogger("geoflow")


def build_faces(n_nodes: int, nx: int, ny: int) -> np.ndarray:
    """
    Face table for `n_nodes` consecutive nodes laid out as nX×nY element blocks.

    Args:
        n_nodes: nodes in the layer (a multiple of nx*ny)
        nx: nodes per element along the first reference direction
        ny: nodes per element along the second reference direction

    Returns:
        (n_elements * (nx-1) * (ny-1), 4) int64 array of node indices.
    """
    block = nx * ny
    if nx < 2 or ny < 2:
        raise ConsistencyError(f"Element blocks of {nx}x{ny} nodes have no faces", stage="faces")
    if n_nodes % block != 0:
        raise ConsistencyError(
            f"{n_nodes} layer nodes do not split into element blocks of {nx}x{ny}", stage="faces"
        )

    xs, ys = np.meshgrid(np.arange(nx - 1), np.arange(ny - 1), indexing="ij")
    xs = xs.ravel()
    ys = ys.ravel()
    local = np.column_stack(
        [
            xs * ny + ys,
            (xs + 1) * ny + ys,
            (xs + 1) * ny + ys + 1,
            xs * ny + ys + 1,
        ]
    ).astype(np.int64)

    bases = np.arange(0, n_nodes, block, dtype=np.int64)
    return (bases[:, None, None] + local[None, :, :]).reshape(-1, NODES_PER_FACE)


def faces_from_table(table: np.ndarray) -> List[Face]:
    return [Face(tuple(int(i) for i in row)) for row in table]


def replicate_faces(table: np.ndarray, n_layers: int, n_nodes_per_layer: int) -> np.ndarray:
    """Repeat a single layer's face table for `n_layers` layers with index offsets."""
    offsets = np.arange(n_layers, dtype=np.int64) * n_nodes_per_layer
    return (offsets[:, None, None] + np.asarray(table, dtype=np.int64)[None, :, :]).reshape(-1, NODES_PER_FACE)


class FaceBuilder:
    """
    Builds the first 2D layer's faces into a reorganized MeshStore.

    Args:
        geometry: header geometry of the dataset
    """

    def __init__(self, geometry: HeaderGeometry):
        self.geometry = geometry

    def face_table(self) -> np.ndarray:
        g = self.geometry
        return build_faces(g.n_nodes_per_2d_layer, g.nodes_x, g.nodes_y)

    def build(self, store: MeshStore) -> List[Face]:
        """Build the faces, store them in `store` and return them."""
        g = self.geometry
        if store.n_nodes != g.n_2d_layers * g.n_nodes_per_2d_layer:
            raise ConsistencyError(
                f"Mesh has {store.n_nodes} nodes; {g.n_2d_layers} 2D layers of "
                f"{g.n_nodes_per_2d_layer} nodes need {g.n_2d_layers * g.n_nodes_per_2d_layer}",
                stage="faces",
            )
        faces = faces_from_table(self.face_table())
        store.set_faces(faces)
        logger.debug("Built %d faces for one 2D layer", len(faces))
        return faces
