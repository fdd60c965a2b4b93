"""
Unit tests for MeshNode and VariableTable.

These tests verify that:
1. Variable names resolve to slots, and unknown names raise
2. Slot access is bounds-checked
3. Nodes order and compare by element layer ID only

"""

import numpy as np
import pytest

from geoflow_to_netcdf.errors import ConfigError, IndexOutOfRangeError, UnknownVariableError
from geoflow_to_netcdf.node import MeshNode, VariableTable


def test_table_for_spherical_job():
    table = VariableTable.for_job(["dtotal", "T"])
    assert table.names == ["x", "y", "z", "lat", "lon", "radius", "dtotal", "T"]
    assert table.index("dtotal") == 6
    assert "T" in table and "u" not in table


def test_table_for_box_job():
    assert VariableTable.for_job(["T"], "box").names == ["x", "y", "z", "T"]


def test_unknown_name_raises_key_error_subclass():
    table = VariableTable(["x", "y"])
    with pytest.raises(UnknownVariableError):
        table.index("w")
    with pytest.raises(KeyError):
        table.index("w")


def test_duplicate_names_rejected():
    with pytest.raises(ConfigError):
        VariableTable(["x", "y", "x"])


def test_var_read_write_and_bounds():
    node = MeshNode.create(3, element_layer_id=2)
    assert node.var(1) == 0.0
    assert node.var(1, 4.5) == 4.5
    assert node.var(1) == 4.5

    with pytest.raises(IndexOutOfRangeError):
        node.var(3)
    with pytest.raises(IndexOutOfRangeError):
        node.var(-1)


def test_sort_key_unset_until_assigned():
    node = MeshNode.create(1, 0)
    assert node.sort_key is None
    node.sort_key = 7
    assert node.sort_key == 7


def test_ordering_uses_element_layer_id_only():
    a = MeshNode.create(2, 0)
    b = MeshNode.create(2, 1)
    c = MeshNode.create(2, 1)
    b.var(0, 99.0)

    assert a < b
    assert b == c
    assert sorted([c, a, b])[0] is a


def test_view_writes_into_backing_arrays():
    slots = np.zeros((2, 3))
    keys = np.full(2, -1, dtype=np.int64)
    node = MeshNode(slots[1], 0, keys, 1)
    node.var(2, 1.5)
    node.sort_key = 4
    assert slots[1, 2] == 1.5
    assert keys.tolist() == [-1, 4]


def test_ordering_against_other_types():
    node = MeshNode.create(1, 0)
    with pytest.raises(TypeError):
        node < 3
    assert (node == "node") is False
