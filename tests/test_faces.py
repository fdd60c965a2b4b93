"""
Unit tests for quad face construction.

These tests verify that:
1. A single element's face is wound counter-clockwise from its bottom-left node
2. Face counts follow (p0 * p1) per element
3. The first layer's faces can be replicated onto the other layers

"""

import numpy as np
import pytest

from geoflow_to_netcdf.errors import ConsistencyError
from geoflow_to_netcdf.faces import FaceBuilder, build_faces, faces_from_table, replicate_faces
from geoflow_to_netcdf.header import HeaderGeometry
from geoflow_to_netcdf.mesh import MeshStore
from geoflow_to_netcdf.node import VariableTable


def test_single_element_face():
    assert build_faces(4, 2, 2).tolist() == [[0, 2, 3, 1]]


def test_faces_of_a_3x2_block():
    # Local node (x, y) sits at x*2 + y.
    assert build_faces(6, 3, 2).tolist() == [[0, 2, 3, 1], [2, 4, 5, 3]]


def test_second_element_is_offset_by_block_size():
    table = build_faces(8, 2, 2)
    assert table.tolist() == [[0, 2, 3, 1], [4, 6, 7, 5]]


@pytest.mark.parametrize("poly_order, n_elems", [((1, 1), 3), ((3, 2), 2), ((4, 4), 5)])
def test_face_count(poly_order, n_elems):
    nx, ny = poly_order[0] + 1, poly_order[1] + 1
    table = build_faces(n_elems * nx * ny, nx, ny)
    assert table.shape == (n_elems * poly_order[0] * poly_order[1], 4)
    assert table.min() == 0
    assert table.max() == n_elems * nx * ny - 1


def test_faces_are_counter_clockwise():
    # Put block nodes on a unit grid and check the signed area of every quad.
    nx, ny = 4, 3
    xs, ys = np.meshgrid(np.arange(nx), np.arange(ny), indexing="ij")
    px, py = xs.ravel().astype(float), ys.ravel().astype(float)

    for quad in build_faces(nx * ny, nx, ny):
        qx, qy = px[quad], py[quad]
        area = 0.5 * np.sum(qx * np.roll(qy, -1) - np.roll(qx, -1) * qy)
        assert area == pytest.approx(1.0)


def test_rejects_partial_blocks():
    with pytest.raises(ConsistencyError):
        build_faces(5, 2, 2)
    with pytest.raises(ConsistencyError):
        build_faces(4, 1, 4)


def test_replicate_faces_offsets_layers():
    table = replicate_faces(build_faces(4, 2, 2), 3, 4)
    assert table.tolist() == [[0, 2, 3, 1], [4, 6, 7, 5], [8, 10, 11, 9]]


def test_builder_stores_first_layer_faces():
    geometry = HeaderGeometry.derive(3, (2, 1, 1), 4, 2)
    store = MeshStore(VariableTable(["x", "y", "z"]), np.zeros((geometry.n_nodes, 3)), [0] * geometry.n_nodes)

    faces = FaceBuilder(geometry).build(store)

    assert len(faces) == geometry.n_faces_per_2d_layer == 4
    assert store.n_faces == 4
    assert int(store.face_table().max()) < geometry.n_nodes_per_2d_layer
    assert faces_from_table(store.face_table()) == faces


def test_builder_rejects_store_not_made_of_whole_layers():
    geometry = HeaderGeometry.derive(3, (2, 1, 1), 4, 2)
    n = geometry.n_nodes_per_2d_layer
    store = MeshStore(VariableTable(["x", "y", "z"]), np.zeros((n, 3)), [0] * n)

    with pytest.raises(ConsistencyError):
        FaceBuilder(geometry).build(store)
    assert store.n_faces == 0
