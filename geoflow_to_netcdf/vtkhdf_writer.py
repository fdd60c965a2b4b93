# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
VTKHDF UnstructuredGrid export
──────────────────────────────────────────────────────────────────────────────
Alternative to the NetCDF schema output for a quick look in ParaView: every
2D mesh layer becomes a sheet of VTK_QUAD cells, built by replicating the
first layer's face table with per-layer node offsets. Points are the
cartesian node positions; every field and, in spherical mode, lat/lon/radius
are written as point data.

"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

import numpy as np
import h5py as h5

from .errors import GridIOError
from .faces import replicate_faces
from .header import NODES_PER_FACE, HeaderGeometry
from .mesh import MeshStore

logger = logging.getLogger("geoflow")

VTK_QUAD = 9


def write_vtkhdf(
    path: str,
    store: MeshStore,
    geometry: HeaderGeometry,
    point_fields: Iterable[str],
    file_attributes: Optional[Dict[str, object]] = None,
    float_dtype: str = "f8",
) -> None:
    """
    Write a reorganized MeshStore with faces as a VTKHDF UnstructuredGrid.

    Args:
        path: output file name (".vtkhdf")
        store: reorganized node collection holding the first layer's faces
        geometry: header geometry used to reorganize the store
        point_fields: node variable names written under PointData
        file_attributes: extra attributes for the VTKHDF root group
        float_dtype: dtype of points and point data
    """
    faces = replicate_faces(store.face_table(), geometry.n_2d_layers, geometry.n_nodes_per_2d_layer)
    n_cells = len(faces)

    points = np.column_stack([store.var("x"), store.var("y"), store.var("z")])
    offsets = np.arange(0, (n_cells + 1) * NODES_PER_FACE, NODES_PER_FACE, dtype=np.int64)

    try:
        f = h5.File(path, "w")
    except OSError as e:
        raise GridIOError(f"Cannot create VTKHDF file: {e}", stage="write", path=str(path)) from e

    with f:
        root = f.create_group("VTKHDF", track_order=True)
        root.attrs["Version"] = (2, 2)
        root.attrs.create(
            "Type", b"UnstructuredGrid", dtype=h5.string_dtype("ascii", len(b"UnstructuredGrid"))
        )
        for key, value in (file_attributes or {}).items():
            root.attrs[key] = value

        root.create_dataset("NumberOfPoints", data=np.asarray([store.n_nodes], dtype=np.int64))
        root.create_dataset("NumberOfCells", data=np.asarray([n_cells], dtype=np.int64))
        root.create_dataset("NumberOfConnectivityIds", data=np.asarray([faces.size], dtype=np.int64))
        root.create_dataset("Points", data=points.astype(float_dtype))
        root.create_dataset("Types", data=np.full(n_cells, VTK_QUAD, dtype=np.uint8))
        root.create_dataset("Offsets", data=offsets)
        root.create_dataset("Connectivity", data=faces.reshape(-1))

        pointdata = root.create_group("PointData")
        for name in point_fields:
            pointdata.create_dataset(name, data=store.var(name).astype(float_dtype))

        root.create_group("CellData")
        root.create_group("FieldData")

    logger.debug("Wrote %d points / %d quads to %s", store.n_nodes, n_cells, path)
