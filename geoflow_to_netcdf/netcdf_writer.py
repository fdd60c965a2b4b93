# -*- coding: utf-8 -*-

"""

Schema-driven NetCDF writer.

The schema (see config.py) lists dimensions, variables with their type,
dimension names and attributes, and global attributes. The writer declares
all of them first and then receives data per variable.

"""

from __future__ import annotations

import logging
import shlex
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import netCDF4

from .errors import ConfigError, GridIOError, SizeMismatchError

logger = logging.getLogger("geoflow")

NC_TYPES = {
    "byte": "i1",
    "ubyte": "u1",
    "char": "S1",
    "short": "i2",
    "ushort": "u2",
    "int": "i4",
    "uint": "u4",
    "int64": "i8",
    "uint64": "u8",
    "float": "f4",
    "double": "f8",
}


def to_nc_type(type_name: str) -> np.dtype:
    """
    Map a schema type name (e.g. "double", "int") to the numpy dtype netCDF4 expects.

    Raises:
        ConfigError: unknown type name.
    """
    try:
        return np.dtype(NC_TYPES[type_name])
    except KeyError:
        raise ConfigError(f"Unknown variable type '{type_name}'; expected one of {sorted(NC_TYPES)}") from None


def generator_attributes(version: str) -> Dict[str, str]:
    """Provenance attributes stored in every output file."""
    return {
        "generator_command": shlex.join(sys.argv),
        "generator_timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "generator_version": version,
    }


class NetCDFWriter:
    """
    Write one NetCDF-4 file from a resolved schema.

    Args:
        path: output file name (e.g. "geoflow_000100.nc")
        dimensions: (name, size) pairs, already filled at runtime
        variables: schema variable entries (name, type, dimensions, attributes)
        attributes: global attributes
        overwrite: replace an existing file instead of failing

    Usage:
        with NetCDFWriter(path, dims, variables, attrs) as w:
            w.write_dimensions(); w.write_variables(); w.write_attributes()
            w.write_data("Mesh2_node_x", lon)
    """

    def __init__(
        self,
        path: str,
        dimensions: List[Tuple[str, int]],
        variables: List[Dict[str, Any]],
        attributes: Optional[Dict[str, Any]] = None,
        overwrite: bool = True,
    ):
        self.path = str(path)
        self.dimensions = list(dimensions)
        self.variables = list(variables)
        self.attributes = dict(attributes or {})

        logger.debug("Opening NetCDF file for writing: %s", self.path)
        try:
            self._nc = netCDF4.Dataset(self.path, "w", clobber=overwrite, format="NETCDF4")
        except OSError as e:
            raise GridIOError(f"Cannot create NetCDF file: {e}", stage="write", path=self.path) from e

    def __enter__(self) -> "NetCDFWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._nc is not None and self._nc.isopen():
            self._nc.close()

    def write_dimensions(self) -> None:
        for name, size in self.dimensions:
            logger.debug("dimension %s = %d", name, size)
            self._nc.createDimension(name, size)

    def write_variables(self) -> None:
        """Declare every schema variable; data comes later via write_data."""
        declared = {name for name, _ in self.dimensions}
        for var in self.variables:
            try:
                name, type_name = var["name"], var["type"]
            except KeyError as e:
                raise ConfigError(f"Variable entry {var!r} is missing {e}") from None
            dims = tuple(var.get("dimensions", []))
            unknown = [d for d in dims if d not in declared]
            if unknown:
                raise ConfigError(f"Variable '{name}' uses undeclared dimension(s) {unknown}")

            logger.debug("variable %s %s%s", type_name, name, dims)
            self._nc.createVariable(name, to_nc_type(type_name), dims)

    def write_attributes(self) -> None:
        for var in self.variables:
            attrs = var.get("attributes") or {}
            if attrs:
                self._nc.variables[var["name"]].setncatts(attrs)
        if self.attributes:
            self._nc.setncatts(self.attributes)

    def write_data(self, name: str, values) -> None:
        """
        Write a variable's data, reshaped to its declared dimensions.

        Raises:
            SizeMismatchError: value count differs from the declared size.
        """
        var = self._nc.variables[name]
        shape = var.shape
        values = np.asarray(values)
        expected = int(np.prod(shape)) if shape else 1
        if values.size != expected:
            raise SizeMismatchError(
                f"Variable '{name}' declares shape {shape} ({expected} values) but got {values.size}",
                stage="write",
                path=self.path,
            )
        if shape:
            var[:] = values.reshape(shape)
        else:
            var.assignValue(values.reshape(()).item())
