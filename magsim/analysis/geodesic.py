"""Geodesic transforms between geographic, ECEF and local ENU frames.

Distances:
    haversine - spherical Earth (equatorial radius), ~0.5% accurate, closed form
    vincenty  - WGS-84 ellipsoid, iterative, sub-millimetre when it converges

The array kernels accept numpy arrays (or scalars) and are what the field
engine uses when it processes a whole loop of segments at once.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from ..core.constants import (
    EARTH_ECCENTRICITY_SQ,
    EARTH_FLATTENING,
    EARTH_RADIUS_EQUATORIAL,
    EARTH_RADIUS_POLAR,
)
from ..core.vector import Vector3

logger = logging.getLogger(__name__)

# Latitude refinement passes in ecef_to_geo. Fixed, not convergence-checked;
# ten passes are well below a millimetre for terrestrial altitudes.
ECEF_LATITUDE_ITERATIONS = 10

VINCENTY_TOLERANCE = 1e-12


class GeoPoint(NamedTuple):
    lat: float  # degrees
    lon: float  # degrees
    alt: float = 0.0  # metres


@dataclass(frozen=True)
class GeodesicResult:
    distance: float  # metres
    iterations: int
    converged: bool


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres on a sphere of the equatorial radius."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_EQUATORIAL * c


def vincenty_inverse(
    lat1: float, lon1: float,
    lat2: float, lon2: float,
    max_iterations: int = 200,
) -> GeodesicResult:
    """Vincenty's inverse formula on the WGS-84 ellipsoid.

    Iterates on the longitude difference on the auxiliary sphere until the
    update is below 1e-12 rad or ``max_iterations`` passes have run. The
    result reports whether it converged; the distance of an unconverged
    result is not meaningful.
    """
    a = EARTH_RADIUS_EQUATORIAL
    b = EARTH_RADIUS_POLAR
    f = EARTH_FLATTENING

    L = math.radians(lon2 - lon1)
    U1 = math.atan((1 - f) * math.tan(math.radians(lat1)))
    U2 = math.atan((1 - f) * math.tan(math.radians(lat2)))
    sin_u1, cos_u1 = math.sin(U1), math.cos(U1)
    sin_u2, cos_u2 = math.sin(U2), math.cos(U2)

    lam = L
    iterations = 0
    converged = False
    sin_sigma = cos_sigma = sigma = cos_sq_alpha = cos_2sigma_m = 0.0

    while iterations < max_iterations:
        iterations += 1
        sin_lam, cos_lam = math.sin(lam), math.cos(lam)
        sin_sigma = math.sqrt(
            (cos_u2 * sin_lam) ** 2
            + (cos_u1 * sin_u2 - sin_u1 * cos_u2 * cos_lam) ** 2
        )
        cos_sigma = sin_u1 * sin_u2 + cos_u1 * cos_u2 * cos_lam
        if abs(sin_sigma) < 1e-15:
            if cos_sigma > 0:
                # coincident points
                return GeodesicResult(0.0, iterations, True)
            # antipodal: the azimuth is undefined
            return GeodesicResult(float("nan"), iterations, False)

        sigma = math.atan2(sin_sigma, cos_sigma)
        sin_alpha = cos_u1 * cos_u2 * sin_lam / sin_sigma
        cos_sq_alpha = 1 - sin_alpha**2
        # equatorial line: cos_sq_alpha == 0
        cos_2sigma_m = (
            cos_sigma - 2 * sin_u1 * sin_u2 / cos_sq_alpha if cos_sq_alpha != 0 else 0.0
        )
        C = f / 16 * cos_sq_alpha * (4 + f * (4 - 3 * cos_sq_alpha))

        lam_prev = lam
        lam = L + (1 - C) * f * sin_alpha * (
            sigma + C * sin_sigma * (
                cos_2sigma_m + C * cos_sigma * (-1 + 2 * cos_2sigma_m**2)
            )
        )
        if abs(lam - lam_prev) <= VINCENTY_TOLERANCE:
            converged = True
            break

    if not converged:
        return GeodesicResult(float("nan"), iterations, False)

    u_sq = cos_sq_alpha * (a**2 - b**2) / b**2
    A = 1 + u_sq / 16384 * (4096 + u_sq * (-768 + u_sq * (320 - 175 * u_sq)))
    B = u_sq / 1024 * (256 + u_sq * (-128 + u_sq * (74 - 47 * u_sq)))
    delta_sigma = B * sin_sigma * (
        cos_2sigma_m + B / 4 * (
            cos_sigma * (-1 + 2 * cos_2sigma_m**2)
            - B / 6 * cos_2sigma_m * (-3 + 4 * sin_sigma**2) * (-3 + 4 * cos_2sigma_m**2)
        )
    )
    return GeodesicResult(b * A * (sigma - delta_sigma), iterations, True)


def vincenty_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float,
    max_iterations: int = 200,
) -> float:
    """Ellipsoidal distance in metres; haversine when Vincenty does not converge."""
    result = vincenty_inverse(lat1, lon1, lat2, lon2, max_iterations)
    if not result.converged:
        logger.debug(
            "Vincenty did not converge after %d iterations, using haversine",
            result.iterations,
        )
        return haversine_distance(lat1, lon1, lat2, lon2)
    return result.distance


# --- Frame transforms -----------------------------------------------------------

def geo_to_ecef_array(lat, lon, alt) -> np.ndarray:
    """Geographic degrees/metres to ECEF metres; returns shape (..., 3)."""
    lat_r = np.radians(lat)
    lon_r = np.radians(lon)
    sin_lat, cos_lat = np.sin(lat_r), np.cos(lat_r)

    # prime-vertical radius of curvature
    N = EARTH_RADIUS_EQUATORIAL / np.sqrt(1 - EARTH_ECCENTRICITY_SQ * sin_lat**2)

    x = (N + alt) * cos_lat * np.cos(lon_r)
    y = (N + alt) * cos_lat * np.sin(lon_r)
    z = (N * (1 - EARTH_ECCENTRICITY_SQ) + alt) * sin_lat
    return np.stack(np.broadcast_arrays(x, y, z), axis=-1)


def ecef_to_geo_array(xyz: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """ECEF metres (..., 3) to (lat deg, lon deg, alt m)."""
    xyz = np.asarray(xyz, dtype=np.float64)
    x, y, z = xyz[..., 0], xyz[..., 1], xyz[..., 2]
    e2 = EARTH_ECCENTRICITY_SQ

    lon = np.arctan2(y, x)
    p = np.sqrt(x**2 + y**2)
    lat = np.arctan2(z, p * (1 - e2))

    for _ in range(ECEF_LATITUDE_ITERATIONS):
        sin_lat = np.sin(lat)
        N = EARTH_RADIUS_EQUATORIAL / np.sqrt(1 - e2 * sin_lat**2)
        lat = np.arctan2(z + e2 * N * sin_lat, p)

    sin_lat = np.sin(lat)
    N = EARTH_RADIUS_EQUATORIAL / np.sqrt(1 - e2 * sin_lat**2)
    # p/cos(lat) degenerates on the polar axis; use the z form there
    cos_lat = np.cos(lat)
    near_pole = np.abs(cos_lat) < 1e-10
    polar_alt = np.abs(z) / np.where(near_pole, np.abs(sin_lat), 1.0) - N * (1 - e2)
    alt = np.where(near_pole, polar_alt, p / np.where(near_pole, 1.0, cos_lat) - N)
    return np.degrees(lat), np.degrees(lon), alt


def geo_to_ecef(lat: float, lon: float, alt: float = 0.0) -> Vector3:
    return Vector3.from_array(geo_to_ecef_array(lat, lon, alt))


def ecef_to_geo(ecef: Vector3) -> GeoPoint:
    lat, lon, alt = ecef_to_geo_array(ecef.to_array())
    return GeoPoint(float(lat), float(lon), float(alt))


def _enu_rotation(lat0: float, lon0: float) -> np.ndarray:
    """Rows are the East, North and Up unit vectors expressed in ECEF."""
    lat_r, lon_r = math.radians(lat0), math.radians(lon0)
    sin_lat, cos_lat = math.sin(lat_r), math.cos(lat_r)
    sin_lon, cos_lon = math.sin(lon_r), math.cos(lon_r)
    return np.array([
        [-sin_lon, cos_lon, 0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
    ])


def ecef_to_enu(ecef: Vector3, lat0: float, lon0: float, alt0: float = 0.0) -> Vector3:
    """Position of ``ecef`` in the East-North-Up frame anchored at (lat0, lon0, alt0)."""
    diff = ecef.to_array() - geo_to_ecef_array(lat0, lon0, alt0)
    return Vector3.from_array(_enu_rotation(lat0, lon0) @ diff)


def ecef_vector_to_enu(vectors: np.ndarray, lat0, lon0) -> np.ndarray:
    """Rotate free ECEF vectors (..., 3) into ENU at the given origin(s).

    ``lat0``/``lon0`` may be arrays broadcasting against the leading shape of
    ``vectors``; used to express field vectors on a grid in local components.
    """
    vectors = np.asarray(vectors, dtype=np.float64)
    lat_r, lon_r = np.radians(lat0), np.radians(lon0)
    sin_lat, cos_lat = np.sin(lat_r), np.cos(lat_r)
    sin_lon, cos_lon = np.sin(lon_r), np.cos(lon_r)
    vx, vy, vz = vectors[..., 0], vectors[..., 1], vectors[..., 2]

    e = -sin_lon * vx + cos_lon * vy
    n = -sin_lat * cos_lon * vx - sin_lat * sin_lon * vy + cos_lat * vz
    u = cos_lat * cos_lon * vx + cos_lat * sin_lon * vy + sin_lat * vz
    return np.stack(np.broadcast_arrays(e, n, u), axis=-1)


def enu_to_ecef_vector(east: float, north: float, up: float, lat0: float, lon0: float) -> Vector3:
    """Inverse rotation of ecef_to_enu for a free vector (no translation)."""
    return Vector3.from_array(_enu_rotation(lat0, lon0).T @ np.array([east, north, up]))
