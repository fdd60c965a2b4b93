#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

Parallel execution utilities for geoflow_to_netcdf.

Timesteps are independent once the mesh exists, so they are split into
contiguous chunks, one per worker process. Each worker builds its own mesh
and converts its chunk; workers share nothing.

"""

from __future__ import annotations

from concurrent.futures.process import BrokenProcessPool
from functools import partial
from typing import List, Optional

import logging
import time
import concurrent.futures

from .config import JobConfig
from .converter import GeoFlowConverter, setup_logging

logger = logging.getLogger("geoflow")


def split_timesteps(timesteps: List[int], nworkers: int) -> List[List[int]]:
    """Split timesteps into at most `nworkers` contiguous, non-empty chunks."""
    nworkers = max(1, min(nworkers, len(timesteps)))
    size, extra = divmod(len(timesteps), nworkers)
    chunks, start = [], 0
    for i in range(nworkers):
        end = start + size + (1 if i < extra else 0)
        chunks.append(list(timesteps[start:end]))
        start = end
    return [c for c in chunks if c]


def process_timestep_chunk(
    timesteps: List[int],
    config: JobConfig,
    dry_run: bool,
    verbose: bool,
) -> List[str]:
    """
    Worker function executed in each process: build the mesh once and convert
    the given timesteps.

    Args:
        timesteps: timestep numbers handled by this worker
        config: job configuration
        dry_run: only log what would be written
        verbose: verbose logging

    Returns:
        files written by this worker
    """
    setup_logging(verbose)
    conv = GeoFlowConverter(config, dry_run=dry_run)
    return conv.process_timesteps(timesteps)


def run_parallel_conversion(
    config: JobConfig,
    timesteps: Optional[List[int]] = None,
    dry_run: bool = False,
    verbose: bool = False,
    nproc: Optional[int] = None,
) -> List[str]:
    """
    High-level runner that dispatches the conversion of many timesteps.

    Parameters:
    - config: job configuration (input/output, mesh, fields, schema).
    - timesteps: timesteps to convert; defaults to the configured ones.
    - dry_run: If True, log the plan without writing output files.
    - verbose: Enable detailed logging.
    - nproc: Number of worker processes.
             If None or not positive, runs serially in this process.
             Otherwise uses up to min(nproc, number of timesteps) workers.

    Behavior:
    - Any conversion error is fatal and re-raised to the caller.
    - If the process pool itself breaks, the chunks without a result are
      converted serially in this process; finished chunks are kept.

    Returns:
    - Paths of all files written, in timestep order.
    """

    if timesteps is None:
        timesteps = config.timesteps.resolve()

    if nproc is not None and nproc > 0:
        nworkers = min(nproc, len(timesteps))
    else:
        nworkers = 1

    logger.info("Starting on %d worker(s) for timesteps %s", nworkers, timesteps)
    t0 = time.time()

    if nworkers <= 1 or dry_run:
        written = GeoFlowConverter(config, dry_run=dry_run).process_timesteps(timesteps)
        logger.info("Total elapsed: %.2fs", time.time() - t0)
        return written

    worker = partial(process_timestep_chunk, config=config, dry_run=dry_run, verbose=verbose)
    chunks = split_timesteps(timesteps, nworkers)

    results: List[Optional[List[str]]] = [None] * len(chunks)
    broken = None
    try:
        with concurrent.futures.ProcessPoolExecutor(max_workers=nworkers) as ex:
            futures = [ex.submit(worker, chunk) for chunk in chunks]
            for i, fut in enumerate(futures):
                try:
                    results[i] = fut.result()
                except BrokenProcessPool as e:
                    broken = e
    except BrokenProcessPool as e:
        broken = e

    if broken is not None:
        pending = [i for i, r in enumerate(results) if r is None]
        logger.error("Parallel execution failed: %s", broken)
        logger.info("Falling back to serial execution for %d of %d chunk(s)...", len(pending), len(chunks))
        conv = GeoFlowConverter(config)
        for i in pending:
            results[i] = conv.process_timesteps(chunks[i])

    written = [path for chunk in results for path in chunk]
    logger.info("Total elapsed: %.2fs", time.time() - t0)
    return written
