# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Job configuration and output schema
──────────────────────────────────────────────────────────────────────────────
A conversion job is described by a JSON file (every key optional):

    {
      "input":     {"directory": "run/out", "grid_roots": ["xgrid", "ygrid", "zgrid"],
                    "extension": "out", "timestep_width": 6, "byteorder": "little"},
      "output":    {"directory": "nc", "prefix": "geoflow", "format": "netcdf"},
      "mesh":      {"element_layers": 4, "layer_ordering": "layer-major",
                    "coordinates": "spherical"},
      "fields":    ["dtotal", "T"],
      "timesteps": {"start": 0, "count": 10, "stride": 100},
      "missing_fields": "skip",
      "dimensions": [...], "variables": [...], "attributes": {...}
    }

`dimensions`, `variables` and `attributes` form the output schema. A
dimension whose value is 0 is filled in at runtime from the mesh geometry
(nNodesPer2DLayer, nFacesPer2DLayer, n2DLayers, nElemLayers, nFaceNodes).
A variable names its data `source`: a node variable, "faces", "layers", or
nothing for metadata-only variables. Entries containing "{field}" are
expanded once per field root. Without a schema the built-in UGRID layout
from `default_schema` is used.

"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .coords import BOX, COORDINATE_MODES, SPHERICAL
from .errors import ConfigError
from .header import (
    DIM_2D_LAYERS,
    DIM_FACE_NODES,
    DIM_FACES_PER_2D_LAYER,
    DIM_NODES_PER_2D_LAYER,
)
from .naming import DEFAULT_EXTENSION, DEFAULT_TIMESTEP_WIDTH, timestep_values
from .reader import BYTEORDERS, LAYER_MAJOR, LAYER_ORDERINGS

logger = logging.getLogger("geoflow")

FORMAT_NETCDF = "netcdf"
FORMAT_VTKHDF = "vtkhdf"
OUTPUT_FORMATS = (FORMAT_NETCDF, FORMAT_VTKHDF)

SOURCE_FACES = "faces"
SOURCE_LAYERS = "layers"
FIELD_PLACEHOLDER = "{field}"

MISSING_SKIP = "skip"
MISSING_FAIL = "fail"


@dataclass
class InputConfig:
    directory: str = "."
    grid_roots: List[str] = field(default_factory=lambda: ["xgrid", "ygrid", "zgrid"])
    extension: str = DEFAULT_EXTENSION
    timestep_width: int = DEFAULT_TIMESTEP_WIDTH
    grid_timestep: int = 0
    byteorder: str = "little"


@dataclass
class OutputConfig:
    directory: Optional[str] = None  # None → input directory
    prefix: str = "geoflow"
    format: str = FORMAT_NETCDF


@dataclass
class MeshConfig:
    element_layers: int = 1
    layer_ordering: str = LAYER_MAJOR
    coordinates: str = SPHERICAL


@dataclass
class TimestepConfig:
    start: int = 0
    count: int = 1
    stride: int = 1
    values: Optional[List[int]] = None  # explicit list wins over start/count/stride

    def resolve(self) -> List[int]:
        if self.values is not None:
            return list(self.values)
        return timestep_values(self.start, self.count, self.stride)


@dataclass
class JobConfig:
    """Everything a conversion job needs, with defaults for every field."""

    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)
    fields: List[str] = field(default_factory=list)
    timesteps: TimestepConfig = field(default_factory=TimestepConfig)
    missing_fields: str = MISSING_SKIP
    dimensions: Optional[List[Dict[str, Any]]] = None
    variables: Optional[List[Dict[str, Any]]] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def output_directory(self) -> str:
        return self.output.directory or self.input.directory

    @property
    def byteorder_code(self) -> str:
        return BYTEORDERS[self.input.byteorder]

    def validate(self) -> "JobConfig":
        """Check enumerated values and counts; returns self for chaining."""
        if self.input.byteorder not in BYTEORDERS:
            raise ConfigError(f"Unknown byteorder '{self.input.byteorder}'; expected one of {sorted(BYTEORDERS)}")
        if len(self.input.grid_roots) != 3:
            raise ConfigError(f"Expected 3 grid roots (x, y, z), got {self.input.grid_roots}")
        if self.output.format not in OUTPUT_FORMATS:
            raise ConfigError(f"Unknown output format '{self.output.format}'; expected one of {OUTPUT_FORMATS}")
        if self.mesh.layer_ordering not in LAYER_ORDERINGS:
            raise ConfigError(
                f"Unknown layer ordering '{self.mesh.layer_ordering}'; expected one of {LAYER_ORDERINGS}"
            )
        if self.mesh.coordinates not in COORDINATE_MODES:
            raise ConfigError(
                f"Unknown coordinate mode '{self.mesh.coordinates}'; expected one of {COORDINATE_MODES}"
            )
        if self.mesh.element_layers < 1:
            raise ConfigError(f"element_layers must be >= 1, got {self.mesh.element_layers}")
        if self.missing_fields not in (MISSING_SKIP, MISSING_FAIL):
            raise ConfigError(f"missing_fields must be '{MISSING_SKIP}' or '{MISSING_FAIL}'")
        if len(set(self.fields)) != len(self.fields):
            raise ConfigError(f"Duplicate field roots in {self.fields}")
        try:
            self.timesteps.resolve()
        except ValueError as e:
            raise ConfigError(str(e)) from e
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _merge_dict(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _dict_to_dataclass(cls, data: dict):
    """Convert a nested dictionary to a dataclass instance, rejecting unknown keys."""
    if not is_dataclass(cls):
        return data
    if not isinstance(data, dict):
        raise ConfigError(f"Expected an object for '{cls.__name__}', got {type(data).__name__}")

    nested = {
        "input": InputConfig,
        "output": OutputConfig,
        "mesh": MeshConfig,
        "timesteps": TimestepConfig,
    }
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key '{key}' in {cls.__name__}")
        if cls is JobConfig and key in nested:
            kwargs[key] = _dict_to_dataclass(nested[key], value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def from_dict(data: Dict[str, Any]) -> JobConfig:
    """Create a validated JobConfig from a (possibly partial) dictionary."""
    try:
        return _dict_to_dataclass(JobConfig, data or {}).validate()
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_json(path: Union[str, Path]) -> JobConfig:
    """
    Load a job configuration from a JSON file.

    Raises:
        ConfigError: missing file, invalid JSON or invalid values
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        raise ConfigError("Configuration file not found", path=str(path)) from None
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON: {e}", path=str(path)) from e

    logger.info("Read configuration %s", path)
    return from_dict(data)


def apply_cli_overrides(config: JobConfig, overrides: Dict[str, Any]) -> JobConfig:
    """
    Apply CLI overrides given as {"section.key": value}; None values are ignored.
    """
    data = config.to_dict()
    for dotted, value in overrides.items():
        if value is None:
            continue
        node = data
        *parents, leaf = dotted.split(".")
        for p in parents:
            node = node.setdefault(p, {})
        node[leaf] = value
    return from_dict(data)


# ──────────────────────────────────────────────────────────────────────────────
# Output schema
# ──────────────────────────────────────────────────────────────────────────────

def default_schema(coordinates: str = SPHERICAL) -> Dict[str, Any]:
    """
    Built-in UGRID layered-mesh schema.

    Node coordinates of the first 2D layer describe the horizontal mesh;
    per-layer radius (or z in box mode) and every field are stored as
    (n2DLayers, nNodesPer2DLayer).
    """
    if coordinates == BOX:
        node_x = {"standard_name": "projection_x_coordinate", "long_name": "node x coordinate"}
        node_y = {"standard_name": "projection_y_coordinate", "long_name": "node y coordinate"}
        x_src, y_src, vertical = "x", "y", ("Mesh2_node_z", "z", {"long_name": "node z coordinate"})
    else:
        node_x = {"standard_name": "longitude", "long_name": "node longitude", "units": "degrees_east"}
        node_y = {"standard_name": "latitude", "long_name": "node latitude", "units": "degrees_north"}
        x_src, y_src, vertical = "lon", "lat", ("Mesh2_node_radius", "radius", {"long_name": "node radius"})

    layered = [DIM_2D_LAYERS, DIM_NODES_PER_2D_LAYER]
    return {
        "dimensions": [
            {"name": DIM_NODES_PER_2D_LAYER, "value": 0},
            {"name": DIM_FACES_PER_2D_LAYER, "value": 0},
            {"name": DIM_2D_LAYERS, "value": 0},
            {"name": DIM_FACE_NODES, "value": 0},
        ],
        "variables": [
            {
                "name": "Mesh2",
                "type": "int",
                "dimensions": [],
                "attributes": {
                    "cf_role": "mesh_topology",
                    "long_name": "Topology data of 2D unstructured mesh",
                    "topology_dimension": 2,
                    "node_coordinates": "Mesh2_node_x Mesh2_node_y",
                    "face_node_connectivity": "Mesh2_face_nodes",
                },
            },
            {"name": "Mesh2_node_x", "type": "double", "dimensions": [DIM_NODES_PER_2D_LAYER],
             "source": x_src, "attributes": node_x},
            {"name": "Mesh2_node_y", "type": "double", "dimensions": [DIM_NODES_PER_2D_LAYER],
             "source": y_src, "attributes": node_y},
            {"name": "Mesh2_face_nodes", "type": "int", "dimensions": [DIM_FACES_PER_2D_LAYER, DIM_FACE_NODES],
             "source": SOURCE_FACES,
             "attributes": {"cf_role": "face_node_connectivity",
                            "long_name": "Maps every quad face to its corner nodes (counter-clockwise)",
                            "start_index": 0}},
            {"name": "Mesh2_layer", "type": "int", "dimensions": [DIM_2D_LAYERS], "source": SOURCE_LAYERS,
             "attributes": {"long_name": "2D mesh layer index"}},
            {"name": vertical[0], "type": "double", "dimensions": layered, "source": vertical[1],
             "attributes": dict(vertical[2], mesh="Mesh2", location="node")},
            {"name": FIELD_PLACEHOLDER, "type": "double", "dimensions": layered, "source": FIELD_PLACEHOLDER,
             "attributes": {"mesh": "Mesh2", "location": "node"}},
        ],
        "attributes": {"Conventions": "UGRID-1.0"},
    }


def resolve_schema(config: JobConfig) -> Dict[str, Any]:
    """Schema of the job: configured parts over the default, fields expanded."""
    schema = default_schema(config.mesh.coordinates)
    if config.dimensions is not None:
        schema["dimensions"] = copy.deepcopy(config.dimensions)
    if config.variables is not None:
        schema["variables"] = copy.deepcopy(config.variables)
    schema["attributes"] = _merge_dict(schema["attributes"], config.attributes)
    schema["variables"] = expand_field_variables(schema["variables"], config.fields)
    return schema


def _substitute(value, root: str):
    if isinstance(value, str):
        return value.replace(FIELD_PLACEHOLDER, root)
    if isinstance(value, list):
        return [_substitute(v, root) for v in value]
    if isinstance(value, dict):
        return {k: _substitute(v, root) for k, v in value.items()}
    return value


def expand_field_variables(variables: List[Dict[str, Any]], field_roots: List[str]) -> List[Dict[str, Any]]:
    """Replace each variable mentioning "{field}" by one copy per field root."""
    expanded = []
    for var in variables:
        if FIELD_PLACEHOLDER in json.dumps(var):
            expanded.extend(_substitute(var, root) for root in field_roots)
        else:
            expanded.append(var)
    return expanded


def fill_dimensions(dimensions: List[Dict[str, Any]], runtime: Dict[str, int]) -> List[Tuple[str, int]]:
    """
    Resolve schema dimensions to (name, size) pairs.

    A 0-valued dimension takes its size from `runtime` under the same name.

    Raises:
        ConfigError: malformed entry, or a 0-valued dimension with no runtime value.
    """
    resolved = []
    for d in dimensions:
        try:
            name, value = d["name"], int(d["value"])
        except (KeyError, TypeError, ValueError):
            raise ConfigError(f"Dimension entries need a 'name' and an integer 'value', got {d!r}") from None
        if value == 0:
            if name not in runtime:
                raise ConfigError(
                    f"Dimension '{name}' is 0 but no runtime size exists for it; "
                    f"runtime dimensions are {sorted(runtime)}"
                )
            value = int(runtime[name])
        resolved.append((name, value))
    return resolved
