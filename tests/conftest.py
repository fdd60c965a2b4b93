"""
Shared fixtures: small synthetic GeoFLOW datasets written to tmp_path.

The default dataset is 3D with poly orders (1, 1, 1), 4 elements split into
2 element layers of 2 elements. Node positions encode where each node sits:

    x = 2 * h + i + 1  (h: element index inside its layer, i: local x index)
    y = j + 0.5        (j: local y index)
    z = 2 * L + k + 1  (L: element layer, k: local z sub-layer index)

so after reorganizing, every 2D mesh layer has a constant z.

"""

from pathlib import Path

import numpy as np
import pytest

from geoflow_to_netcdf.header import pack_header


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────

def write_geoflow_file(path, values, dim, n_elems, poly_order, byteorder="<", **header):
    """Write a GeoFLOW binary file: header followed by float64 values."""
    path = Path(path)
    data = np.asarray(values, dtype=np.dtype("f8").newbyteorder(byteorder))
    with open(path, "wb") as fh:
        fh.write(pack_header(dim, n_elems, tuple(poly_order), byteorder=byteorder, **header))
        fh.write(data.tobytes())
    return path


def synthetic_grid(n_elem_layers=2, n_elems_per_layer=2, poly_order=(1, 1, 1), ordering="layer-major"):
    """
    x, y, z arrays in solver file order for the dataset described above.
    """
    nx, ny = poly_order[0] + 1, poly_order[1] + 1
    nz = poly_order[2] + 1 if len(poly_order) == 3 else 1
    n_elems = n_elem_layers * n_elems_per_layer

    xs, ys, zs = [], [], []
    for e in range(n_elems):
        if ordering == "layer-major":
            layer, h = divmod(e, n_elems_per_layer)
        else:
            h, layer = divmod(e, n_elem_layers)
        for k in range(nz):
            for i in range(nx):
                for j in range(ny):
                    xs.append(h * nx + i + 1.0)
                    ys.append(j + 0.5)
                    zs.append(nz * layer + k + 1.0)
    return np.array(xs), np.array(ys), np.array(zs)


def field_values(x, y, z):
    """Field whose value at each node is a known function of its position."""
    return 100.0 * x + 10.0 * y + z


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture
def dataset(tmp_path):
    """
    Factory writing grid files (and optionally field files) into tmp_path.

    Returns the directory; field files are written for every requested timestep.
    """

    def make(fields=("dtotal",), timesteps=(0,), n_elem_layers=2, n_elems_per_layer=2,
             poly_order=(1, 1, 1), ordering="layer-major"):
        x, y, z = synthetic_grid(n_elem_layers, n_elems_per_layer, poly_order, ordering)
        dim = len(poly_order)
        n_elems = n_elem_layers * n_elems_per_layer

        for root, values in (("xgrid", x), ("ygrid", y), ("zgrid", z)):
            write_geoflow_file(tmp_path / f"{root}.000000.out", values, dim, n_elems, poly_order)

        for t in timesteps:
            for root in fields:
                write_geoflow_file(
                    tmp_path / f"{root}.{t:06d}.out",
                    field_values(x, y, z) + t,
                    dim,
                    n_elems,
                    poly_order,
                    time_cycle=t,
                    time_stamp=0.5 * t,
                )
        return tmp_path

    return make
