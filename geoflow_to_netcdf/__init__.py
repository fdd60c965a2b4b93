# -*- coding: utf-8 -*-

"""

geoflow_to_netcdf: GeoFLOW → NetCDF (UGRID) Converter
=====================================================

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Converts the binary grid and field files written by the GeoFLOW
spectral-element solver into NetCDF files holding an unstructured quad
mesh (one horizontal layer of connectivity shared by every depth layer)
plus the node values of each field.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- GeoFLOW writes node values element by element, in the solver's own
  tensor-product ordering, with a bare binary header. Nothing outside the
  solver can read that.
- NetCDF with a UGRID mesh description is self-describing: dimensions,
  variables, attributes and mesh topology travel with the data, so standard
  tools can plot it layer by layer.

"""

__version__ = "1.0.0"

from .errors import (
    GeoFlowError,
    GridIOError,
    FormatError,
    SizeMismatchError,
    UnknownVariableError,
    DegenerateVectorError,
    IndexOutOfRangeError,
    ConsistencyError,
    ConfigError,
)

from .header import HeaderGeometry, HeaderInfo
from .reader import GridFileReader, RawSample, read_sample
from .node import MeshNode, VariableTable
from .mesh import Face, MeshStore
from .reorganize import MeshReorganizer
from .faces import FaceBuilder, build_faces

from .converter import (
    GeoFlowConverter,
    MissingFilePolicy,
    resolve_input,
)

from .parallel import (
    process_timestep_chunk,
    run_parallel_conversion,
)
