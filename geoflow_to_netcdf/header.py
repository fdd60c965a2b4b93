# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
GeoFLOW file header and the mesh geometry derived from it
──────────────────────────────────────────────────────────────────────────────
Every GeoFLOW binary file (grid axis or field) starts with the same fixed
header:

    int32       version
    int32       dim               (2 or 3)
    uint64      nElems
    int32[dim]  polyOrder
    int32       gridType
    uint64      timeCycle
    float64     timeStamp
    int32       hasMultVars

Nodes are the tensor-product interpolation points of each element, so an
element holds (p0+1)(p1+1)[(p2+1)] values. Elements are grouped into element
layers (radial shells on a sphere); each element layer holds p2+1 horizontal
2D mesh layers in 3D, one in 2D.

"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .errors import FormatError

# Field formats without byte order prefix; poly orders are inserted after NELEMS.
LEAD_FORMAT = "iiQ"
TAIL_FORMAT = "iQdi"
POLY_ORDER_FORMAT = "i"

# Names of the runtime dimensions handed to the output schema.
DIM_NODES_PER_2D_LAYER = "nNodesPer2DLayer"
DIM_FACES_PER_2D_LAYER = "nFacesPer2DLayer"
DIM_2D_LAYERS = "n2DLayers"
DIM_ELEM_LAYERS = "nElemLayers"
DIM_FACE_NODES = "nFaceNodes"

NODES_PER_FACE = 4


def header_size(dim: int, byteorder: str = "<") -> int:
    """Byte size of a header for a dataset of dimension `dim`."""
    return struct.calcsize(byteorder + LEAD_FORMAT + POLY_ORDER_FORMAT * dim + TAIL_FORMAT)


@dataclass(frozen=True)
class HeaderGeometry:
    """
    Node/face/layer counts derived once from a parsed header.

    Attributes:
        dim: spatial dimension of the elements
        poly_order: polynomial order per reference direction
        n_elems: total element count
        n_elem_layers: number of element layers the elements are split into
        n_elems_per_layer: elements in one element layer
        n_sub_layers: 2D mesh layers inside one element layer (p2+1, or 1 in 2D)
        n_2d_layers: 2D mesh layers in the whole volume
        n_nodes_per_elem: nodes in one element (all directions)
        n_nodes_per_2d_elem: nodes in the x,y block of one element
        n_nodes_per_2d_layer: nodes in one 2D mesh layer
        n_faces_per_2d_layer: quad faces in one 2D mesh layer
        n_nodes: nodes in the full volume
    """

    dim: int
    poly_order: Tuple[int, ...]
    n_elems: int
    n_elem_layers: int
    n_elems_per_layer: int
    n_sub_layers: int
    n_2d_layers: int
    n_nodes_per_elem: int
    n_nodes_per_2d_elem: int
    n_nodes_per_2d_layer: int
    n_faces_per_2d_layer: int
    n_nodes: int

    @classmethod
    def derive(cls, dim: int, poly_order: Tuple[int, ...], n_elems: int, n_elem_layers: int = 1) -> "HeaderGeometry":
        """
        Compute geometry from the raw header values.

        Raises:
            FormatError: unsupported dimension, poly order list not matching the
                dimension, or elements that do not split evenly into layers.
        """
        if dim not in (2, 3):
            raise FormatError(f"Unsupported dimension {dim}; expected 2 or 3")
        if len(poly_order) < 2:
            raise FormatError(f"Expected at least 2 polynomial orders, got {len(poly_order)}")
        if len(poly_order) != dim:
            raise FormatError(f"Polynomial order list {list(poly_order)} does not match dimension {dim}")
        if any(p < 1 for p in poly_order):
            raise FormatError(f"Polynomial orders must be >= 1, got {list(poly_order)}")
        if n_elem_layers < 1:
            raise FormatError(f"Number of element layers must be >= 1, got {n_elem_layers}")
        if n_elems % n_elem_layers != 0:
            raise FormatError(
                f"{n_elems} elements cannot be split evenly into {n_elem_layers} element layers"
            )

        nx, ny = poly_order[0] + 1, poly_order[1] + 1
        n_nodes_per_elem = 1
        for p in poly_order:
            n_nodes_per_elem *= p + 1

        n_elems_per_layer = n_elems // n_elem_layers
        n_sub_layers = poly_order[2] + 1 if dim == 3 else 1

        return cls(
            dim=dim,
            poly_order=tuple(poly_order),
            n_elems=n_elems,
            n_elem_layers=n_elem_layers,
            n_elems_per_layer=n_elems_per_layer,
            n_sub_layers=n_sub_layers,
            n_2d_layers=n_elem_layers * n_sub_layers,
            n_nodes_per_elem=n_nodes_per_elem,
            n_nodes_per_2d_elem=nx * ny,
            n_nodes_per_2d_layer=n_elems_per_layer * nx * ny,
            n_faces_per_2d_layer=n_elems_per_layer * poly_order[0] * poly_order[1],
            n_nodes=n_nodes_per_elem * n_elems,
        )

    @property
    def nodes_x(self) -> int:
        return self.poly_order[0] + 1

    @property
    def nodes_y(self) -> int:
        return self.poly_order[1] + 1

    def dimensions(self) -> Dict[str, int]:
        """Sizes the output schema may reference before any data is written."""
        return {
            DIM_NODES_PER_2D_LAYER: self.n_nodes_per_2d_layer,
            DIM_FACES_PER_2D_LAYER: self.n_faces_per_2d_layer,
            DIM_2D_LAYERS: self.n_2d_layers,
            DIM_ELEM_LAYERS: self.n_elem_layers,
            DIM_FACE_NODES: NODES_PER_FACE,
        }


@dataclass(frozen=True)
class HeaderInfo:
    """Fields stored in a GeoFLOW file header plus the derived geometry."""

    version: int
    dim: int
    n_elems: int
    poly_order: Tuple[int, ...]
    grid_type: int
    time_cycle: int
    time_stamp: float
    has_mult_vars: int
    n_header_bytes: int
    geometry: Optional[HeaderGeometry] = field(default=None, compare=False)

    def describe(self) -> str:
        """Multi-line summary, used by the --print-header CLI option."""
        lines = [
            "Header Info",
            f"  IO version:          {self.version}",
            f"  Dimension:           {self.dim}",
            f"  Num elements:        {self.n_elems}",
            f"  Poly orders:         {' '.join(str(p) for p in self.poly_order)}",
            f"  Grid type:           {self.grid_type}",
            f"  Time cycle:          {self.time_cycle}",
            f"  Time stamp:          {self.time_stamp}",
            f"  Has mult fields?:    {self.has_mult_vars}",
            f"  Num header bytes:    {self.n_header_bytes}",
        ]
        g = self.geometry
        if g is not None:
            lines += [
                "Derived Geometry",
                f"  Nodes per element:   {g.n_nodes_per_elem}",
                f"  Nodes in volume:     {g.n_nodes}",
                f"  Element layers:      {g.n_elem_layers}",
                f"  Elements per layer:  {g.n_elems_per_layer}",
                f"  2D mesh layers:      {g.n_2d_layers}",
                f"  Nodes per 2D layer:  {g.n_nodes_per_2d_layer}",
                f"  Faces per 2D layer:  {g.n_faces_per_2d_layer}",
            ]
        return "\n".join(lines)


def pack_header(
    dim: int,
    n_elems: int,
    poly_order: Tuple[int, ...],
    version: int = 1,
    grid_type: int = 0,
    time_cycle: int = 0,
    time_stamp: float = 0.0,
    has_mult_vars: int = 0,
    byteorder: str = "<",
) -> bytes:
    """
    Serialize header fields into GeoFLOW's binary layout.

    The converter never writes GeoFLOW files; this is used to build small
    datasets for tests.
    """
    fmt = byteorder + LEAD_FORMAT + POLY_ORDER_FORMAT * len(poly_order) + TAIL_FORMAT
    return struct.pack(
        fmt, version, dim, n_elems, *poly_order, grid_type, time_cycle, time_stamp, has_mult_vars
    )
