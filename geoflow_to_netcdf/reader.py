# -*- coding: utf-8 -*-

"""

Read GeoFLOW binary files: the fixed header followed by a flat array of
node values in solver-native (element-major) order.

"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import BinaryIO

import numpy as np

from .errors import FormatError, GridIOError
from .header import (
    LEAD_FORMAT,
    POLY_ORDER_FORMAT,
    TAIL_FORMAT,
    HeaderGeometry,
    HeaderInfo,
)

logger = logging.getLogger("geoflow")

SCOPE_VOLUME = "volume"
SCOPE_LAYER = "layer"

LAYER_MAJOR = "layer-major"
LAYER_MINOR = "layer-minor"
LAYER_ORDERINGS = (LAYER_MAJOR, LAYER_MINOR)

BYTEORDERS = {"little": "<", "big": ">", "native": "="}


@dataclass(frozen=True)
class RawSample:
    """
    One file's header plus its values and the element layer ID of each value.

    Both arrays are read-only and have the same length.
    """

    path: str
    header: HeaderInfo
    values: np.ndarray
    element_layer_ids: np.ndarray

    def __len__(self) -> int:
        return len(self.values)

    @property
    def geometry(self) -> HeaderGeometry:
        return self.header.geometry


def element_layer_ids(geometry: HeaderGeometry, n_values: int, ordering: str = LAYER_MAJOR) -> np.ndarray:
    """
    Element layer ID for each of the first `n_values` values of a file.

    Args:
        geometry: derived header geometry
        n_values: number of values read from the file
        ordering: how solver element numbers map to element layers;
            "layer-major" numbers all elements of layer 0 first,
            "layer-minor" cycles through the layers element by element.
    """
    elem = np.arange(n_values, dtype=np.int64) // geometry.n_nodes_per_elem
    if ordering == LAYER_MAJOR:
        return elem // geometry.n_elems_per_layer
    if ordering == LAYER_MINOR:
        return elem % geometry.n_elem_layers
    raise FormatError(f"Unknown layer ordering '{ordering}'; expected one of {LAYER_ORDERINGS}")


class GridFileReader:
    """
    Reader for a single GeoFLOW grid or field file.

    The value type is fixed per reader instance (float64 unless told
    otherwise) and must match what the solver wrote.

    Usage:
        reader = GridFileReader("xgrid.000000.out", n_elem_layers=4)
        sample = reader.read_data()
    """

    def __init__(
        self,
        path: str,
        dtype=np.float64,
        n_elem_layers: int = 1,
        layer_ordering: str = LAYER_MAJOR,
        byteorder: str = "<",
    ):
        self.path = str(path)
        self.byteorder = byteorder
        self.layer_ordering = layer_ordering
        self.dtype = np.dtype(dtype).newbyteorder(byteorder)
        self.header = self.read_header(self.path, n_elem_layers=n_elem_layers, byteorder=byteorder)

    @staticmethod
    def _read_exact(fh: BinaryIO, nbytes: int, path: str, what: str) -> bytes:
        buf = fh.read(nbytes)
        if len(buf) != nbytes:
            raise FormatError(
                f"Cannot read {what}: expected {nbytes} bytes, got {len(buf)}", path=path
            )
        return buf

    @classmethod
    def read_header(cls, path: str, n_elem_layers: int = 1, byteorder: str = "<") -> HeaderInfo:
        """
        Parse the header of a GeoFLOW file and derive its geometry.

        Raises:
            GridIOError: the file cannot be opened
            FormatError: truncated header or invalid header values
        """
        path = str(path)
        lead = struct.Struct(byteorder + LEAD_FORMAT)
        tail = struct.Struct(byteorder + TAIL_FORMAT)
        order_size = struct.calcsize(byteorder + POLY_ORDER_FORMAT)

        try:
            fh = open(path, "rb")
        except OSError as e:
            raise GridIOError(f"Cannot open file: {e.strerror or e}", path=path) from e

        with fh:
            version, dim, n_elems = lead.unpack(cls._read_exact(fh, lead.size, path, "header"))
            if dim not in (2, 3):
                raise FormatError(f"Unsupported dimension {dim}; expected 2 or 3", path=path)

            raw = cls._read_exact(fh, order_size * dim, path, "polynomial orders")
            poly_order = struct.unpack(byteorder + POLY_ORDER_FORMAT * dim, raw)

            grid_type, time_cycle, time_stamp, has_mult_vars = tail.unpack(
                cls._read_exact(fh, tail.size, path, "header")
            )
            n_header_bytes = fh.tell()

        try:
            geometry = HeaderGeometry.derive(dim, poly_order, n_elems, n_elem_layers)
        except FormatError as e:
            raise FormatError(e.message, path=path) from e

        return HeaderInfo(
            version=version,
            dim=dim,
            n_elems=n_elems,
            poly_order=tuple(poly_order),
            grid_type=grid_type,
            time_cycle=time_cycle,
            time_stamp=time_stamp,
            has_mult_vars=has_mult_vars,
            n_header_bytes=n_header_bytes,
            geometry=geometry,
        )

    def value_count(self, scope: str = SCOPE_VOLUME) -> int:
        geometry = self.header.geometry
        if scope == SCOPE_VOLUME:
            return geometry.n_nodes
        if scope == SCOPE_LAYER:
            return geometry.n_nodes_per_2d_layer
        raise ValueError(f"Unknown read scope '{scope}'; expected '{SCOPE_VOLUME}' or '{SCOPE_LAYER}'")

    def read_data(self, scope: str = SCOPE_VOLUME) -> RawSample:
        """
        Read the value array following the header.

        Args:
            scope: "volume" reads every node of the file, "layer" only the
                first 2D-layer's worth of values.

        Returns:
            RawSample with read-only values and element layer IDs.
        """
        count = self.value_count(scope)
        nbytes = count * self.dtype.itemsize

        try:
            fh = open(self.path, "rb")
        except OSError as e:
            raise GridIOError(f"Cannot open file: {e.strerror or e}", path=self.path) from e

        with fh:
            fh.seek(self.header.n_header_bytes)
            buf = fh.read(nbytes)

        if len(buf) != nbytes:
            raise FormatError(
                f"Cannot read the requested {nbytes} bytes of data, got {len(buf)}", path=self.path
            )

        values = np.frombuffer(buf, dtype=self.dtype).astype(self.dtype.newbyteorder("="))
        ids = element_layer_ids(self.header.geometry, count, self.layer_ordering)
        values.flags.writeable = False
        ids.flags.writeable = False

        logger.debug("Read %d values (%s scope) from %s", count, scope, self.path)
        return RawSample(path=self.path, header=self.header, values=values, element_layer_ids=ids)


def read_sample(path: str, n_elem_layers: int = 1, layer_ordering: str = LAYER_MAJOR,
                byteorder: str = "<", scope: str = SCOPE_VOLUME) -> RawSample:
    """Convenience wrapper: header + data of one file."""
    reader = GridFileReader(path, n_elem_layers=n_elem_layers, layer_ordering=layer_ordering, byteorder=byteorder)
    return reader.read_data(scope)
