"""
Unit tests for job configuration and the output schema.

These tests verify that:
1. Defaults produce a valid job and unknown keys are rejected
2. JSON files load, and CLI overrides win over file values
3. Schema dimensions are filled at runtime and "{field}" entries expand per field

"""

import json

import pytest

from geoflow_to_netcdf.config import (
    apply_cli_overrides,
    default_schema,
    expand_field_variables,
    fill_dimensions,
    from_dict,
    load_json,
    resolve_schema,
)
from geoflow_to_netcdf.errors import ConfigError


# ──────────────────────────────────────────────────────────────
# Job configuration
# ──────────────────────────────────────────────────────────────

def test_defaults():
    config = from_dict({})
    assert config.input.grid_roots == ["xgrid", "ygrid", "zgrid"]
    assert config.mesh.element_layers == 1
    assert config.mesh.coordinates == "spherical"
    assert config.missing_fields == "skip"
    assert config.timesteps.resolve() == [0]
    assert config.output_directory == "."
    assert config.byteorder_code == "<"


def test_nested_sections():
    config = from_dict({
        "input": {"directory": "run", "byteorder": "big"},
        "output": {"directory": "nc"},
        "mesh": {"element_layers": 4},
        "fields": ["dtotal", "T"],
        "timesteps": {"start": 100, "count": 3, "stride": 100},
    })
    assert config.input.directory == "run"
    assert config.byteorder_code == ">"
    assert config.output_directory == "nc"
    assert config.mesh.element_layers == 4
    assert config.timesteps.resolve() == [100, 200, 300]


@pytest.mark.parametrize(
    "data",
    [
        {"colour": "red"},
        {"mesh": {"elements": 3}},
        {"mesh": {"coordinates": "polar"}},
        {"mesh": {"element_layers": 0}},
        {"output": {"format": "csv"}},
        {"missing_fields": "ignore"},
        {"fields": ["T", "T"]},
        {"timesteps": {"stride": 0}},
        {"input": {"grid_roots": ["x", "y"]}},
        {"mesh": 4},
    ],
)
def test_invalid_configuration(data):
    with pytest.raises(ConfigError):
        from_dict(data)


def test_load_json(tmp_path):
    path = tmp_path / "job.json"
    path.write_text(json.dumps({"fields": ["dtotal"], "timesteps": {"values": [5, 10]}}))
    config = load_json(path)
    assert config.fields == ["dtotal"]
    assert config.timesteps.resolve() == [5, 10]


def test_load_json_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_json(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigError):
        load_json(bad)


def test_cli_overrides():
    config = from_dict({"input": {"directory": "a"}, "fields": ["u"]})
    config = apply_cli_overrides(config, {
        "input.directory": "b",
        "mesh.element_layers": 2,
        "fields": None,
        "timesteps.values": [1, 2],
    })
    assert config.input.directory == "b"
    assert config.mesh.element_layers == 2
    assert config.fields == ["u"]
    assert config.timesteps.resolve() == [1, 2]


# ──────────────────────────────────────────────────────────────
# Schema
# ──────────────────────────────────────────────────────────────

def test_fill_dimensions():
    dims = [{"name": "nNodesPer2DLayer", "value": 0}, {"name": "two", "value": 2}]
    assert fill_dimensions(dims, {"nNodesPer2DLayer": 8}) == [("nNodesPer2DLayer", 8), ("two", 2)]

    with pytest.raises(ConfigError):
        fill_dimensions([{"name": "nCells", "value": 0}], {})
    with pytest.raises(ConfigError):
        fill_dimensions([{"value": 3}], {})


def test_expand_field_variables():
    variables = [
        {"name": "Mesh2"},
        {"name": "{field}", "source": "{field}", "attributes": {"long_name": "{field} on nodes"}},
    ]
    expanded = expand_field_variables(variables, ["T", "dtotal"])
    assert [v["name"] for v in expanded] == ["Mesh2", "T", "dtotal"]
    assert expanded[2]["attributes"]["long_name"] == "dtotal on nodes"
    assert expanded[1]["source"] == "T"


def test_default_schema_by_coordinate_mode():
    spherical = {v["name"]: v for v in default_schema("spherical")["variables"]}
    assert spherical["Mesh2_node_x"]["source"] == "lon"
    assert spherical["Mesh2_node_radius"]["source"] == "radius"

    box = {v["name"]: v for v in default_schema("box")["variables"]}
    assert box["Mesh2_node_x"]["source"] == "x"
    assert "Mesh2_node_z" in box


def test_resolve_schema_uses_configured_parts():
    config = from_dict({
        "fields": ["T"],
        "dimensions": [{"name": "n", "value": 0}],
        "attributes": {"title": "run 7"},
    })
    schema = resolve_schema(config)
    assert schema["dimensions"] == [{"name": "n", "value": 0}]
    assert schema["attributes"] == {"Conventions": "UGRID-1.0", "title": "run 7"}
    assert "T" in [v["name"] for v in schema["variables"]]
