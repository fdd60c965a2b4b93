#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
CLI QUICK START (copy–paste, then tweak)
──────────────────────────────────────────────────────────────────────────────
Example run (4 element layers, two fields, ten timesteps every 100 cycles):

    geoflow-to-netcdf \
        --input-dir ./run/outputs \
        --output-dir ./netcdf \
        --fields dtotal,T \
        --timesteps 0-900:100 \
        --elem-layers 4 \
        --verbose

Driven by a JSON job file (CLI arguments override its values):

    geoflow-to-netcdf --config job.json --nproc 4

Exploration mode:

    # List variable roots and timesteps found in the input directory
    geoflow-to-netcdf --input-dir ./run/outputs --list-variables

    # Print one file's header and derived geometry
    geoflow-to-netcdf --print-header ./run/outputs/xgrid.000000.out --elem-layers 4

    # Dry-run: show dimensions, variables and target files without writing
    geoflow-to-netcdf --config job.json --dry-run

Optional args:

    --config           JSON job file (input, output, mesh, fields, timesteps, schema)
    --input-dir        Directory holding xgrid/ygrid/zgrid and field files
    --output-dir       Where output files go (default: input directory)
    --output-prefix    Output file prefix (default: geoflow)
    --fields           Comma-separated field roots (e.g. dtotal,T)
    --timesteps        "7", "0,100,200" or "0-900:100"
    --elem-layers      Number of element layers the elements are split into
    --layer-ordering   layer-major | layer-minor element numbering
    --coordinates      spherical (lat/lon/radius) | box (raw x, y, z)
    --format           netcdf | vtkhdf
    --byteorder        little | big | native
    --strict           A missing field file is an error, not a warning
    --nproc            Worker processes for timesteps (default: serial)
    --verbose          Step-by-step narration

On failure a single line names the failing stage and input, and the exit
status is 1.

"""


import argparse
import logging
import sys

from .config import JobConfig, MISSING_FAIL, apply_cli_overrides, from_dict, load_json
from .converter import list_variables, setup_logging
from .errors import GeoFlowError
from .naming import parse_timesteps
from .parallel import run_parallel_conversion
from .reader import GridFileReader

logger = logging.getLogger("geoflow")


def timesteps_arg(arg: str):
    try:
        return parse_timesteps(arg)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def fields_arg(arg: str):
    """Comma-separated field roots; empty entries are dropped."""
    return [f.strip() for f in arg.split(",") if f.strip() != ""]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert GeoFLOW binary output to NetCDF unstructured meshes")

    parser.add_argument("--config", type=str, default=None, help="JSON job configuration file.")
    parser.add_argument("--input-dir", type=str, default=None, help="Directory containing GeoFLOW grid and field files.")
    parser.add_argument("--output-dir", type=str, default=None, help="Output directory (default: input directory).")
    parser.add_argument("-o", "--output-prefix", dest="output_prefix", default=None, help="Output file prefix (default: geoflow).")

    parser.add_argument("--fields", type=fields_arg, default=None, help="Comma-separated field roots (e.g. dtotal,T).")
    parser.add_argument("-t", "--timesteps", type=timesteps_arg, default=None, help="Timesteps like '0', '0,100' or '0-900:100'.")

    parser.add_argument("--elem-layers", type=int, default=None, help="Number of element layers (default: 1).")
    parser.add_argument("--layer-ordering", choices=["layer-major", "layer-minor"], default=None, help="How solver element numbers map to element layers.")
    parser.add_argument("--coordinates", choices=["spherical", "box"], default=None, help="Coordinate output mode.")
    parser.add_argument("--format", choices=["netcdf", "vtkhdf"], default=None, help="Output file format.")
    parser.add_argument("--byteorder", choices=["little", "big", "native"], default=None, help="Byte order of the input files.")

    parser.add_argument("--strict", action="store_true", help="Fail on a missing field file instead of skipping it.")
    parser.add_argument("--nproc", type=int, default=None, help="Number of worker processes (default: serial).")

    parser.add_argument("--list-variables", action="store_true", help="List variable roots/timesteps in the input directory and exit.")
    parser.add_argument("--print-header", metavar="FILE", default=None, help="Print a file's header and derived geometry and exit.")

    parser.add_argument("--dry-run", action="store_true", help="Print plan without writing files.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")
    return parser


def resolve_config(args: argparse.Namespace) -> JobConfig:
    """Job file (if any) with command line values applied on top."""
    config = load_json(args.config) if args.config else from_dict({})
    overrides = {
        "input.directory": args.input_dir,
        "input.byteorder": args.byteorder,
        "output.directory": args.output_dir,
        "output.prefix": args.output_prefix,
        "output.format": args.format,
        "mesh.element_layers": args.elem_layers,
        "mesh.layer_ordering": args.layer_ordering,
        "mesh.coordinates": args.coordinates,
        "fields": args.fields,
        "timesteps.values": args.timesteps,
        "missing_fields": MISSING_FAIL if args.strict else None,
    }
    return apply_cli_overrides(config, overrides)


def run(args: argparse.Namespace) -> int:
    config = resolve_config(args)

    if args.print_header:
        header = GridFileReader.read_header(
            args.print_header, n_elem_layers=config.mesh.element_layers, byteorder=config.byteorder_code
        )
        print(header.describe())
        return 0

    if args.list_variables:
        logger.info("Listing variables in '%s'...", config.input.directory)
        found = list_variables(config)
        if found:
            print("Available variables:")
            for root, steps in found.items():
                print(f" - {root}: {len(steps)} timestep(s) [{steps[0]}..{steps[-1]}]")
        else:
            print("No variables discovered.")
        return 0

    run_parallel_conversion(
        config,
        dry_run=args.dry_run,
        verbose=args.verbose,
        nproc=args.nproc,
    )
    return 0


def main(argv=None) -> None:
    """
    Parse CLI args and run the conversion pipeline.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging early
    setup_logging(args.verbose)

    try:
        status = run(args)
    except GeoFlowError as e:
        logger.error("%s failed: %s", e.stage, e)
        logger.debug("Exception details:", exc_info=True)
        sys.exit(1)

    sys.exit(status)


if __name__ == "__main__":
    main()
