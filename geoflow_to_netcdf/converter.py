#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Converts a GeoFLOW dataset (x, y, z grid files + per-timestep field files)
into NetCDF files describing an unstructured quad mesh, one file per
timestep.

──────────────────────────────────────────────────────────────────────────────
PIPELINE
──────────────────────────────────────────────────────────────────────────────
 1. read the three grid files (header + values, solver element-major order)
 2. build one node per value; lat/lon/radius in spherical mode
 3. stable sort by element layer, then by 2D mesh layer
 4. build the quad faces of the first 2D layer (shared by all layers)
 5. per timestep: read each field file into its node slot and write the
    output file described by the schema

A missing grid file is fatal. A missing field file is, by default, only a
warning: datasets may have sparse timesteps. `MissingFilePolicy` makes that
decision explicit.

"""

from __future__ import annotations

import enum
import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from . import __version__
from .config import (
    FORMAT_VTKHDF,
    SOURCE_FACES,
    SOURCE_LAYERS,
    JobConfig,
    fill_dimensions,
    resolve_schema,
)
from .coords import apply_coordinate_transform
from .errors import ConsistencyError, GridIOError, SizeMismatchError, UnknownVariableError
from .faces import FaceBuilder
from .header import HeaderGeometry, HeaderInfo
from .mesh import MeshStore
from .naming import discover_variables, field_filename, known_roots
from .netcdf_writer import NetCDFWriter, generator_attributes
from .node import VariableTable
from .reader import GridFileReader, RawSample
from .reorganize import MeshReorganizer
from .vtkhdf_writer import write_vtkhdf

logger = logging.getLogger("geoflow")


def setup_logging(verbose: bool) -> None:
    """
    Configure global logging.

    Args:
        verbose: If True, set DEBUG level, otherwise INFO.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from libraries (adjustable)
    logging.getLogger("h5py").setLevel(logging.WARNING)
    logging.getLogger("netCDF4").setLevel(logging.WARNING)


class MissingFilePolicy(enum.Enum):
    """What to do when an expected input file does not exist."""

    FAIL = "fail"
    SKIP = "skip"


def resolve_input(path: str, policy: MissingFilePolicy, what: str = "Input file") -> Optional[str]:
    """
    Return `path` if it exists; otherwise skip (None + warning) or fail per `policy`.

    Raises:
        GridIOError: the file is missing and the policy is FAIL.
    """
    if os.path.isfile(path):
        return path
    if policy is MissingFilePolicy.SKIP:
        logger.warning("%s not found; skipping: %s", what, path)
        return None
    raise GridIOError(f"{what} not found", path=path)


class GeoFlowConverter:
    """
    Convert one GeoFLOW dataset according to a JobConfig.

    The mesh is built once (`build_mesh`) and reused for every timestep the
    converter processes.
    """

    def __init__(self, config: JobConfig, dry_run: bool = False):
        self.config = config.validate()
        self.dry_run = dry_run

        self.table = VariableTable.for_job(config.fields, config.mesh.coordinates)
        self.schema = resolve_schema(config)
        self.field_policy = MissingFilePolicy(config.missing_fields)

        self.header: Optional[HeaderInfo] = None
        self.geometry: Optional[HeaderGeometry] = None
        self.store: Optional[MeshStore] = None

    # ── paths ────────────────────────────────────────────────────────────────

    def _input_path(self, root: str, timestep: int) -> str:
        inp = self.config.input
        return os.path.join(inp.directory, field_filename(root, timestep, inp.extension, inp.timestep_width))

    def grid_paths(self) -> List[str]:
        return [self._input_path(root, self.config.input.grid_timestep) for root in self.config.input.grid_roots]

    def field_path(self, root: str, timestep: int) -> str:
        return self._input_path(root, timestep)

    def output_path(self, timestep: int) -> str:
        ext = "vtkhdf" if self.config.output.format == FORMAT_VTKHDF else "nc"
        width = self.config.input.timestep_width
        name = f"{self.config.output.prefix}_{timestep:0{width}d}.{ext}"
        return os.path.join(self.config.output_directory, name)

    def _reader(self, path: str) -> GridFileReader:
        return GridFileReader(
            path,
            n_elem_layers=self.config.mesh.element_layers,
            layer_ordering=self.config.mesh.layer_ordering,
            byteorder=self.config.byteorder_code,
        )

    # ── mesh ─────────────────────────────────────────────────────────────────

    def read_grid(self) -> Tuple[RawSample, RawSample, RawSample]:
        """Read the x, y, z grid files (a missing grid file is always fatal)."""
        samples = []
        for path in self.grid_paths():
            resolve_input(path, MissingFilePolicy.FAIL, "Grid file")
            samples.append(self._reader(path).read_data())
        x, y, z = samples
        return x, y, z

    def build_mesh(self) -> MeshStore:
        """
        Read grid files and build the reorganized node collection with faces.

        Returns:
            the MeshStore, also kept as `self.store`
        """
        t0 = time.time()
        x, y, z = self.read_grid()

        self.header = x.header
        self.geometry = x.geometry
        logger.info(
            "Grid: dim=%d, %d elements, poly orders %s, %d element layer(s), %d nodes",
            self.header.dim,
            self.header.n_elems,
            list(self.header.poly_order),
            self.geometry.n_elem_layers,
            self.geometry.n_nodes,
        )

        store = MeshStore.from_grid(x, y, z, self.table)
        apply_coordinate_transform(store, self.config.mesh.coordinates)
        MeshReorganizer(store, self.geometry).reorganize()
        FaceBuilder(self.geometry).build(store)

        self.store = store
        logger.info(
            "Mesh: %d 2D layer(s) x %d nodes, %d faces per layer (%.2fs)",
            self.geometry.n_2d_layers,
            self.geometry.n_nodes_per_2d_layer,
            store.n_faces,
            time.time() - t0,
        )
        return store

    # ── fields ───────────────────────────────────────────────────────────────

    def read_fields(self, timestep: int) -> Dict[str, HeaderInfo]:
        """
        Read every field file of `timestep` into the node slots.

        Skipped fields are filled with NaN so no stale values from an earlier
        timestep are written.

        Returns:
            header of every field that was read, by root name
        """
        if self.store is None:
            self.build_mesh()

        headers: Dict[str, HeaderInfo] = {}
        for root in self.config.fields:
            path = resolve_input(self.field_path(root, timestep), self.field_policy, f"Field '{root}'")
            if path is None:
                self.store.set_var(root, np.full(self.store.n_nodes, np.nan))
                continue

            sample = self._reader(path).read_data()
            if sample.header.poly_order != self.header.poly_order or sample.header.n_elems != self.header.n_elems:
                raise SizeMismatchError(
                    f"Field '{root}' has {sample.header.n_elems} elements of order "
                    f"{list(sample.header.poly_order)}; grid has {self.header.n_elems} of order "
                    f"{list(self.header.poly_order)}",
                    path=path,
                )
            self.store.read_field_to_nodes(root, sample)
            headers[root] = sample.header
        return headers

    # ── output ───────────────────────────────────────────────────────────────

    def _dimension_sizes(self) -> List[Tuple[str, int]]:
        return fill_dimensions(self.schema["dimensions"], self.geometry.dimensions())

    def variable_data(self, var: Dict[str, Any], sizes: Dict[str, int]) -> Optional[np.ndarray]:
        """
        Data for one schema variable, shaped to its declared dimensions.

        Node variables cover either every node (layers x nodes) or, when the
        declared size is one 2D layer, the first layer only.
        """
        source = var.get("source")
        if source is None:
            return None

        shape = tuple(sizes[d] for d in var.get("dimensions", []))
        size = int(np.prod(shape)) if shape else 1

        if source == SOURCE_FACES:
            data = self.store.face_table()
        elif source == SOURCE_LAYERS:
            data = np.arange(self.geometry.n_2d_layers, dtype=np.int32)
        elif source in self.table:
            column = self.store.var(source)
            if size == column.size:
                data = column
            elif size == self.geometry.n_nodes_per_2d_layer:
                data = column[:size]
            else:
                raise SizeMismatchError(
                    f"Variable '{var['name']}' declares {size} values; node variable '{source}' has "
                    f"{column.size} ({self.geometry.n_nodes_per_2d_layer} per 2D layer)",
                    stage="write",
                )
        else:
            raise UnknownVariableError(
                f"Variable '{var['name']}' has unknown source '{source}'", stage="write"
            )

        if data.size != size:
            raise SizeMismatchError(
                f"Variable '{var['name']}' declares shape {shape} but its data has {data.size} values",
                stage="write",
            )
        return np.reshape(data, shape)

    def _file_attributes(self, headers: Dict[str, HeaderInfo]) -> Dict[str, Any]:
        attrs = dict(self.schema.get("attributes", {}))
        attrs.update(generator_attributes(__version__))
        ref = next(iter(headers.values()), self.header)
        attrs["time_cycle"] = int(ref.time_cycle)
        attrs["time_stamp"] = float(ref.time_stamp)
        attrs["grid_type"] = int(self.header.grid_type)
        attrs["poly_order"] = np.asarray(self.header.poly_order, dtype=np.int32)
        return attrs

    def write_netcdf(self, path: str, headers: Dict[str, HeaderInfo]) -> None:
        dims = self._dimension_sizes()
        sizes = dict(dims)
        with NetCDFWriter(path, dims, self.schema["variables"], self._file_attributes(headers)) as w:
            w.write_dimensions()
            w.write_variables()
            w.write_attributes()
            for var in self.schema["variables"]:
                data = self.variable_data(var, sizes)
                if data is not None:
                    w.write_data(var["name"], data)

    def write_vtkhdf(self, path: str, headers: Dict[str, HeaderInfo]) -> None:
        point_fields = [n for n in self.table.names if n not in ("x", "y", "z")]
        attrs = {k: v for k, v in self._file_attributes(headers).items() if k != "Conventions"}
        write_vtkhdf(path, self.store, self.geometry, point_fields, attrs)

    def convert_timestep(self, timestep: int) -> Optional[str]:
        """
        Read the fields of one timestep and write its output file.

        Returns:
            the file written, or None when every field file was missing.
        """
        if self.store is None:
            self.build_mesh()

        t0 = time.time()
        headers = self.read_fields(timestep)
        if self.config.fields and not headers:
            logger.warning("Skipping timestep %s: no field files found; no file created.", timestep)
            return None

        if self.store.n_faces != self.geometry.n_faces_per_2d_layer:
            raise ConsistencyError(
                f"Mesh holds {self.store.n_faces} faces; expected {self.geometry.n_faces_per_2d_layer}"
            )

        path = self.output_path(timestep)
        out_dir = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(out_dir, exist_ok=True)
        except OSError as e:
            raise GridIOError(
                f"Cannot create output directory: {e.strerror or e}", stage="write", path=out_dir
            ) from e
        if self.config.output.format == FORMAT_VTKHDF:
            self.write_vtkhdf(path, headers)
        else:
            self.write_netcdf(path, headers)

        logger.info("DONE: Saved '%s' in %.2fs", path, time.time() - t0)
        return path

    def plan(self, timesteps: List[int]) -> Dict[str, Any]:
        """
        Describe what a conversion would do, reading only the grid header.

        Used for dry runs; nothing is written.
        """
        x_path = resolve_input(self.grid_paths()[0], MissingFilePolicy.FAIL, "Grid file")
        header = self._reader(x_path).header
        geometry = header.geometry
        dims = fill_dimensions(self.schema["dimensions"], geometry.dimensions())

        missing = {}
        for t in timesteps:
            absent = [r for r in self.config.fields if not os.path.isfile(self.field_path(r, t))]
            if absent:
                missing[t] = absent

        return {
            "dimensions": dims,
            "variables": [v["name"] for v in self.schema["variables"]],
            "outputs": [self.output_path(t) for t in timesteps],
            "missing_fields": missing,
        }

    def process_timesteps(self, timesteps: List[int]) -> List[str]:
        """
        Convert several timesteps sharing one mesh.

        Returns:
            files written (dry runs return none)
        """
        if self.dry_run:
            plan = self.plan(timesteps)
            logger.info("[dry-run] Dimensions: %s", ", ".join(f"{n}={s}" for n, s in plan["dimensions"]))
            logger.info("[dry-run] Variables: %s", ", ".join(plan["variables"]))
            for out in plan["outputs"]:
                logger.info("[dry-run] Would write file '%s'", out)
            for t, absent in plan["missing_fields"].items():
                level = logging.ERROR if self.field_policy is MissingFilePolicy.FAIL else logging.WARNING
                logger.log(level, "[dry-run] Timestep %s is missing field file(s): %s", t, ", ".join(absent))
            return []

        written = []
        for t in timesteps:
            out = self.convert_timestep(t)
            if out is not None:
                written.append(out)
        return written


def list_variables(config: JobConfig) -> Dict[str, List[int]]:
    """
    Variable roots and timesteps present in the input directory.

    Grid roots are reported too, so users can check all inputs at once.
    Names of the job's grid and field roots are matched against those roots
    first, so dotted roots are reported whole.
    """
    roots = known_roots(config.input.grid_roots, config.fields)
    return discover_variables(config.input.directory, config.input.extension, roots)
