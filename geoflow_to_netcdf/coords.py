# -*- coding: utf-8 -*-

"""

Cartesian → spherical (latitude, longitude, radius) coordinate helpers.

The scalar functions work on a single (x, y, z) triple; the `_array`
variants apply the same math to whole node columns in one vectorised pass.
The sphere centre is always the origin.

"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from .errors import DegenerateVectorError

ORIGIN = (0.0, 0.0, 0.0)

SPHERICAL = "spherical"
BOX = "box"
COORDINATE_MODES = (SPHERICAL, BOX)


def magnitude(p: Sequence[float]) -> float:
    return math.sqrt(p[0] * p[0] + p[1] * p[1] + p[2] * p[2])


def radius(p: Sequence[float], c: Sequence[float] = ORIGIN) -> float:
    """Distance of `p` from the sphere centre `c`."""
    return magnitude((p[0] - c[0], p[1] - c[1], p[2] - c[2]))


def normalize(p: Sequence[float]) -> Tuple[float, float, float]:
    """
    Unit vector in the direction of `p`.

    Raises:
        DegenerateVectorError: if `p` has zero length.
    """
    m = magnitude(p)
    if m == 0.0:
        raise DegenerateVectorError(f"Cannot normalize zero-length vector {tuple(p)}")
    return (p[0] / m, p[1] / m, p[2] / m)


def to_degrees(v):
    return v * 180.0 / math.pi


def to_lat_lon(p: Sequence[float]) -> Tuple[float, float]:
    """
    Latitude and longitude (radians) of a normalized vector.

    At the poles atan2(0, 0) gives a longitude of 0.
    """
    z = min(1.0, max(-1.0, p[2]))
    return (math.asin(z), math.atan2(p[1], p[0]))


def xyz_to_lat_lon_radius(p: Sequence[float], degrees: bool = True) -> Tuple[float, float, float]:
    """(lat, lon, radius) of a cartesian point; angles in degrees by default."""
    r = radius(p, ORIGIN)
    lat, lon = to_lat_lon(normalize(p))
    if degrees:
        lat, lon = to_degrees(lat), to_degrees(lon)
    return (lat, lon, r)


def xyz_to_lat_lon_radius_array(
    x: np.ndarray, y: np.ndarray, z: np.ndarray, degrees: bool = True
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorised `xyz_to_lat_lon_radius` over node columns.

    Raises:
        DegenerateVectorError: naming the first node at the origin.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)

    r = np.sqrt(x * x + y * y + z * z)
    zero = np.flatnonzero(r == 0.0)
    if zero.size:
        i = int(zero[0])
        raise DegenerateVectorError(
            f"Cannot normalize zero-length vector at node {i} ({zero.size} node(s) at the origin)"
        )

    lat = np.arcsin(np.clip(z / r, -1.0, 1.0))
    lon = np.arctan2(y / r, x / r)
    if degrees:
        lat = np.degrees(lat)
        lon = np.degrees(lon)
    return lat, lon, r


def apply_coordinate_transform(store, mode: str = SPHERICAL) -> None:
    """
    Fill the lat/lon/radius slots of every node from its x, y, z slots.

    In "box" mode the raw cartesian coordinates are kept as they are.
    """
    if mode == BOX:
        return
    if mode != SPHERICAL:
        raise ValueError(f"Unknown coordinate mode '{mode}'; expected one of {COORDINATE_MODES}")

    lat, lon, r = xyz_to_lat_lon_radius_array(store.var("x"), store.var("y"), store.var("z"))
    store.set_var("lat", lat)
    store.set_var("lon", lon)
    store.set_var("radius", r)
