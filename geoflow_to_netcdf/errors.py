# -*- coding: utf-8 -*-

"""

Exception types raised by geoflow_to_netcdf.

Every error is fatal for the conversion job that raised it. The command line
reports it as a single diagnostic line (stage + message) and exits non-zero.

"""

from __future__ import annotations

from typing import Optional


class GeoFlowError(Exception):
    """
    Base class for conversion errors.

    Args:
        message: human readable description
        stage: pipeline stage that failed (e.g. "read", "sort", "write")
        path: input/output file involved, if any
    """

    default_stage = "convert"

    def __init__(self, message: str, stage: Optional[str] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} [{self.path}]"
        return self.message


class GridIOError(GeoFlowError):
    """A binary file could not be opened or read."""

    default_stage = "read"


class FormatError(GeoFlowError):
    """Header fields outside the valid range, or truncated content."""

    default_stage = "read"


class SizeMismatchError(GeoFlowError):
    """Lengths disagree between x/y/z samples or a field and the node set."""

    default_stage = "build"


class UnknownVariableError(GeoFlowError, KeyError):
    """Name not present in the variable table."""

    default_stage = "build"

    def __str__(self) -> str:
        return GeoFlowError.__str__(self)


class DegenerateVectorError(GeoFlowError, ValueError):
    """Normalization of a zero-length vector."""

    default_stage = "transform"


class IndexOutOfRangeError(GeoFlowError, IndexError):
    """Slot or face index beyond bounds."""

    default_stage = "build"


class ConsistencyError(GeoFlowError):
    """Derived node/face counts disagree with the header geometry."""

    default_stage = "mesh"


class ConfigError(GeoFlowError):
    """Invalid job configuration or output schema."""

    default_stage = "config"
