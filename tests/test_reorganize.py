"""
Unit tests for the two-phase node reorganization.

These tests verify that:
1. Phase 1 is a stable sort by element layer ID
2. After both phases every 2D mesh layer is contiguous (constant z) and each
   element's node block keeps its internal order
3. Running the reorganization again changes nothing
4. Field files read after reorganizing land on the right nodes

"""

import numpy as np
import pytest

from geoflow_to_netcdf.errors import ConsistencyError
from geoflow_to_netcdf.faces import build_faces
from geoflow_to_netcdf.header import HeaderGeometry, HeaderInfo
from geoflow_to_netcdf.mesh import MeshStore
from geoflow_to_netcdf.node import VariableTable
from geoflow_to_netcdf.reader import RawSample, element_layer_ids
from geoflow_to_netcdf.reorganize import MeshReorganizer

from conftest import field_values, synthetic_grid


def grid_store(n_elem_layers=2, n_elems_per_layer=2, poly_order=(1, 1, 1), ordering="layer-major"):
    x, y, z = synthetic_grid(n_elem_layers, n_elems_per_layer, poly_order, ordering)
    geometry = HeaderGeometry.derive(
        len(poly_order), poly_order, n_elem_layers * n_elems_per_layer, n_elem_layers
    )
    table = VariableTable.for_job(["T"], "box")
    store = MeshStore(table, np.zeros((len(x), len(table))), element_layer_ids(geometry, len(x), ordering))
    store.set_var("x", x)
    store.set_var("y", y)
    store.set_var("z", z)
    return store, geometry


# ──────────────────────────────────────────────────────────────
# Phase 1
# ──────────────────────────────────────────────────────────────

def test_phase_one_is_stable():
    geometry = HeaderGeometry.derive(2, (1, 1), 2)
    ids = [1, 1, 1, 1, 0, 0, 0, 0]
    store = MeshStore(VariableTable(["x", "y", "z"]), np.zeros((8, 3)), ids)
    store.set_var("x", np.arange(8))

    MeshReorganizer(store, geometry).sort_by_element_layer()

    assert store.element_layer_ids.tolist() == [0, 0, 0, 0, 1, 1, 1, 1]
    assert store.var("x").tolist() == [4, 5, 6, 7, 0, 1, 2, 3]


# ──────────────────────────────────────────────────────────────
# Full reorganization
# ──────────────────────────────────────────────────────────────

def test_two_element_example():
    # Two 2D elements of poly order (1, 1), already in element layer order.
    geometry = HeaderGeometry.derive(2, (1, 1), 2)
    store = MeshStore(VariableTable(["x", "y", "z"]), np.zeros((8, 3)), [0, 0, 0, 0, 1, 1, 1, 1])
    store.set_var("x", np.arange(8))

    MeshReorganizer(store, geometry).reorganize()

    assert store.var("x").tolist() == list(range(8))
    assert store.sort_keys.tolist() == [0, 0, 0, 0, 2, 2, 2, 2]
    assert build_faces(4, 2, 2).tolist() == [[0, 2, 3, 1]]


@pytest.mark.parametrize("ordering", ["layer-major", "layer-minor"])
def test_layers_have_constant_z(ordering):
    store, geometry = grid_store(ordering=ordering)
    MeshReorganizer(store, geometry).reorganize()

    z = store.layer("z", geometry.n_nodes_per_2d_layer)
    assert z.shape == (4, 8)
    for k, row in enumerate(z):
        assert np.all(row == k + 1)


def test_element_blocks_keep_internal_order():
    store, geometry = grid_store()
    MeshReorganizer(store, geometry).reorganize()

    # First layer: element 0 then element 1, each as an (x, y) grid with y fastest.
    assert store.layer("x", 8, 0).tolist() == [1, 1, 2, 2, 3, 3, 4, 4]
    assert store.layer("y", 8, 0).tolist() == [0.5, 1.5] * 4


def test_reorganize_is_idempotent():
    store, geometry = grid_store(n_elem_layers=3, n_elems_per_layer=2, poly_order=(2, 1, 2))
    reorganizer = MeshReorganizer(store, geometry)
    reorganizer.reorganize()
    first = store.var("x").copy(), store.var("z").copy(), store.order.copy()

    reorganizer.reorganize()

    np.testing.assert_array_equal(store.var("x"), first[0])
    np.testing.assert_array_equal(store.var("z"), first[1])
    np.testing.assert_array_equal(store.order, first[2])


def test_field_aligned_after_reorganize():
    store, geometry = grid_store(ordering="layer-minor")
    x, y, z = synthetic_grid(ordering="layer-minor")
    MeshReorganizer(store, geometry).reorganize()

    header = HeaderInfo(1, 3, 4, (1, 1, 1), 0, 0, 0.0, 0, 44, geometry)
    sample = RawSample("T.000000.out", header, field_values(x, y, z), np.zeros(len(x), dtype=np.int64))
    store.read_field_to_nodes("T", sample)

    np.testing.assert_allclose(store.var("T"), field_values(store.var("x"), store.var("y"), store.var("z")))


def test_node_count_must_match_geometry():
    geometry = HeaderGeometry.derive(2, (1, 1), 2)
    store = MeshStore(VariableTable(["x", "y", "z"]), np.zeros((6, 3)), [0] * 6)
    with pytest.raises(ConsistencyError):
        MeshReorganizer(store, geometry).reorganize()


def test_too_many_elements_in_one_layer():
    geometry = HeaderGeometry.derive(2, (1, 1), 2, 2)
    store = MeshStore(VariableTable(["x", "y", "z"]), np.zeros((8, 3)), [0] * 8)
    with pytest.raises(ConsistencyError):
        MeshReorganizer(store, geometry).reorganize()
