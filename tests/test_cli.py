"""
Unit tests for the geoflow-to-netcdf CLI.

These tests verify that the command-line interface:
1. Executes a dry-run without errors
2. Lists available variables correctly
3. Prints a file header with its derived geometry
4. Converts a dataset driven by a JSON job file
5. Handles invalid input folders gracefully

"""

import json
import subprocess
import sys

import pytest

from geoflow_to_netcdf.cli import build_parser, main, resolve_config


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "geoflow_to_netcdf.cli", *args],
        capture_output=True,
        text=True,
    )


# ──────────────────────────────────────────────────────────────
# Tests
# ──────────────────────────────────────────────────────────────

def test_cli_dry_run(dataset, tmp_path):
    """Ensure the CLI dry-run command executes without writing files."""
    directory = dataset()
    out = tmp_path / "out"

    result = run_cli(
        "--input-dir", str(directory),
        "--output-dir", str(out),
        "--fields", "dtotal",
        "--elem-layers", "2",
        "--dry-run",
        "--verbose",
    )

    assert result.returncode == 0
    assert "dry-run" in result.stderr.lower()
    assert not out.exists()


def test_cli_list_variables(dataset):
    """Verify that the CLI lists variable roots found in the input directory."""
    directory = dataset(fields=("dtotal",), timesteps=(0, 10))

    result = run_cli("--input-dir", str(directory), "--list-variables")

    assert result.returncode == 0
    assert "available variables" in result.stdout.lower()
    assert "dtotal: 2 timestep(s) [0..10]" in result.stdout


def test_cli_print_header(dataset):
    directory = dataset()

    result = run_cli("--print-header", str(directory / "xgrid.000000.out"), "--elem-layers", "2")

    assert result.returncode == 0
    assert "Num elements:        4" in result.stdout
    assert "Derived Geometry" in result.stdout


def test_cli_config_file(dataset, tmp_path):
    """A JSON job file drives a full conversion; --timesteps overrides it."""
    directory = dataset(timesteps=(0, 1))
    job = tmp_path / "job.json"
    job.write_text(json.dumps({
        "input": {"directory": str(directory)},
        "output": {"directory": str(tmp_path / "nc"), "prefix": "run"},
        "mesh": {"element_layers": 2},
        "fields": ["dtotal"],
        "timesteps": {"start": 0, "count": 2},
    }))

    result = run_cli("--config", str(job), "--timesteps", "1")

    assert result.returncode == 0, result.stderr
    assert sorted(p.name for p in (tmp_path / "nc").iterdir()) == ["run_000001.nc"]


def test_cli_invalid_folder(tmp_path):
    """Check that the CLI returns a non-zero exit code for a non-existent folder."""
    result = run_cli("--input-dir", str(tmp_path / "does_not_exist"), "--fields", "dtotal")

    assert result.returncode != 0
    assert "read failed" in result.stderr.lower()


# ──────────────────────────────────────────────────────────────
# In-process helpers
# ──────────────────────────────────────────────────────────────

def test_resolve_config_applies_flags():
    args = build_parser().parse_args(
        ["--input-dir", "run", "--fields", "T, dtotal,", "-t", "0-20:10", "--strict", "--coordinates", "box"]
    )
    config = resolve_config(args)
    assert config.input.directory == "run"
    assert config.fields == ["T", "dtotal"]
    assert config.timesteps.resolve() == [0, 10, 20]
    assert config.missing_fields == "fail"
    assert config.mesh.coordinates == "box"


def test_main_exits_nonzero_on_bad_config(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "missing.json")])
    assert exc.value.code == 1


def test_bad_timesteps_argument_is_usage_error():
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["--timesteps", "5-1"])
    assert exc.value.code == 2


def test_cli_list_variables_missing_folder(tmp_path):
    """A missing input folder is reported in one line, without a traceback."""
    result = run_cli("--input-dir", str(tmp_path / "nowhere"), "--list-variables")

    assert result.returncode == 1
    assert "read failed" in result.stderr.lower()
    assert "nowhere" in result.stderr
    assert "Traceback" not in result.stderr


def test_cli_output_dir_under_a_file(dataset, tmp_path):
    """An output directory that cannot be created is a one-line write failure."""
    directory = dataset()
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    result = run_cli(
        "--input-dir", str(directory),
        "--output-dir", str(blocker / "sub"),
        "--fields", "dtotal",
        "--elem-layers", "2",
    )

    assert result.returncode == 1
    assert "write failed" in result.stderr.lower()
    assert "Traceback" not in result.stderr
