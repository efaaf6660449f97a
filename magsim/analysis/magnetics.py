"""Magnetic field superposition over geographic coordinates.

Current loops lying tangent to the Earth's surface are split into straight
segments and each segment is treated as a current element. The discretized
Biot-Savart law gives its contribution at a field point:

    dB = (mu_0 / 4 pi) * (I dl x r_hat) / r_reg^2

where r_reg is the regularized distance from ``buffer``, so a field point on
top of a segment yields a large but finite value instead of a pole.
Contributions are summed over segments, turns and sources.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np

from ..core.config import AnalysisResult, SimulationSettings
from ..core.constants import EARTH_FIELD_AVERAGE, MU_0
from ..core.vector import ZERO, Vector3
from .buffer import buffer_delta, regularize_distance
from .geodesic import (
    ecef_to_geo_array,
    ecef_vector_to_enu,
    geo_to_ecef_array,
    haversine_distance,
)

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTS = 72

_BIOT_SAVART_COEFF = MU_0 / (4 * math.pi)


@dataclass
class FieldSource:
    lat: float  # degrees
    lon: float  # degrees
    alt: float = 0.0  # metres
    radius: float = 1.0  # metres
    turns: float = 1.0
    current: float = 1.0  # amperes
    segments: int = DEFAULT_SEGMENTS
    type: str = "loop"
    name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldSource:
        return cls(
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            alt=float(data.get("alt", 0.0)),
            radius=float(data.get("radius", 1.0)),
            turns=float(data.get("turns", 1.0)),
            current=float(data.get("current", 1.0)),
            segments=int(data.get("segments", DEFAULT_SEGMENTS)),
            type=str(data.get("type", "loop")),
            name=str(data.get("name", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "lat": self.lat,
            "lon": self.lon,
            "alt": self.alt,
            "radius": self.radius,
            "turns": self.turns,
            "current": self.current,
            "segments": self.segments,
        }


@dataclass
class FieldSample:
    lat: float
    lon: float
    alt: float
    field: Vector3
    magnitude: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "alt": self.alt,
            "field": self.field.to_dict(),
            "magnitude": self.magnitude,
        }


# --- Kernels ---------------------------------------------------------------------

def _biot_savart_elements(
    positions: np.ndarray,
    idl: np.ndarray,
    points: np.ndarray,
    buffer_scale: float,
) -> np.ndarray:
    """Field (P, 3) at ``points`` (P, 3) from current elements.

    ``positions`` (N, 3) are element midpoints and ``idl`` (N, 3) the current
    element vectors I*dl, all in ECEF metres.
    """
    r = points[:, None, :] - positions[None, :, :]  # (P, N, 3)
    r_mag = np.linalg.norm(r, axis=-1)  # (P, N)
    r_reg = regularize_distance(r_mag, buffer_scale)

    # zero-length displacement: fall back to a unit radial +z
    zero = r_mag == 0.0
    r_hat = np.where(
        zero[..., None],
        np.array([0.0, 0.0, 1.0]),
        r / np.where(zero, 1.0, r_mag)[..., None],
    )

    cross = np.cross(np.broadcast_to(idl[None, :, :], r_hat.shape), r_hat)
    with np.errstate(divide="ignore", invalid="ignore"):
        # only reachable with buffer_scale == 0 on an exact hit
        contrib = _BIOT_SAVART_COEFF * cross / (r_reg * r_reg)[..., None]
    contrib = np.where(np.isfinite(contrib), contrib, 0.0)
    return contrib.sum(axis=1)


def _loop_frame(center: np.ndarray, center_lon: float) -> tuple[np.ndarray, np.ndarray]:
    """East and North unit vectors of the plane tangent to the sphere at center."""
    norm = np.linalg.norm(center)
    normal = center / norm if norm > 1e-15 else np.array([0.0, 0.0, 1.0])

    lon_r = math.radians(center_lon)
    east = np.array([-math.sin(lon_r), math.cos(lon_r), 0.0])
    east /= np.linalg.norm(east)
    north = np.cross(normal, east)
    north /= np.linalg.norm(north)
    return east, north


def loop_elements(
    center_lat: float, center_lon: float, alt: float,
    radius: float,
    current: float,
    segments: int = DEFAULT_SEGMENTS,
) -> tuple[np.ndarray, np.ndarray]:
    """Midpoints (ECEF) and I*dl vectors for a loop split into equal angles.

    Midpoints are placed in the local East/North plane, expressed as
    geographic coordinates, and mapped back to ECEF, so a loop is described
    by the same geo positions a caller would use for single elements.
    """
    if segments < 1:
        raise ValueError(f"Loop needs at least one segment, got {segments}")

    center = geo_to_ecef_array(center_lat, center_lon, alt)
    east, north = _loop_frame(center, center_lon)

    seg_angle = 2 * math.pi / segments
    seg_length = 2 * math.pi * radius / segments
    mid = (np.arange(segments) + 0.5) * seg_angle
    cos_m, sin_m = np.cos(mid)[:, None], np.sin(mid)[:, None]

    local = radius * (cos_m * east + sin_m * north)
    lat, lon, h = ecef_to_geo_array(center + local)
    positions = geo_to_ecef_array(lat, lon, h)

    tangent = -sin_m * east + cos_m * north
    tangent /= np.linalg.norm(tangent, axis=-1, keepdims=True)
    idl = tangent * (current * seg_length)
    return positions, idl


# --- Public engine calls -----------------------------------------------------------

def biot_savart_spherical(
    lat1: float, lon1: float, alt1: float,
    lat2: float, lon2: float, alt2: float,
    current: float,
    direction: Vector3,
    segment_length: float,
    buffer_scale: float = 1.0,
) -> Vector3:
    """Field at (lat2, lon2, alt2) from one current element at (lat1, lon1, alt1).

    ``direction`` is the element's direction in ECEF (normally a unit vector);
    the element is I * segment_length * direction.
    """
    source = geo_to_ecef_array(lat1, lon1, alt1)[None, :]
    point = geo_to_ecef_array(lat2, lon2, alt2)[None, :]
    idl = (direction.to_array() * (current * segment_length))[None, :]
    return Vector3.from_array(_biot_savart_elements(source, idl, point, buffer_scale)[0])


def geo_circular_loop(
    center_lat: float, center_lon: float, alt: float,
    radius: float,
    turns: float,
    current: float,
    field_lat: float, field_lon: float, field_alt: float,
    segments: int = DEFAULT_SEGMENTS,
    buffer_scale: float = 1.0,
) -> Vector3:
    """Field at a geographic point from a flat circular loop tangent to the Earth.

    Accuracy grows with ``segments``; it is a fixed accuracy/cost knob, not
    adaptive. Turns simply multiply the current.
    """
    positions, idl = loop_elements(
        center_lat, center_lon, alt, radius, current * turns, segments
    )
    point = geo_to_ecef_array(field_lat, field_lon, field_alt)[None, :]
    return Vector3.from_array(_biot_savart_elements(positions, idl, point, buffer_scale)[0])


def _loop_sources(sources: Iterable[FieldSource]) -> list[FieldSource]:
    return [s for s in sources if s.type == "loop"]


def _field_at_points(
    sources: Iterable[FieldSource],
    points: np.ndarray,
    buffer_scale: float,
) -> np.ndarray:
    total = np.zeros_like(points)
    for src in _loop_sources(sources):
        positions, idl = loop_elements(
            src.lat, src.lon, src.alt, src.radius, src.current * src.turns, src.segments
        )
        total += _biot_savart_elements(positions, idl, points, buffer_scale)
    return total


def field_at(
    sources: Iterable[FieldSource],
    lat: float, lon: float, alt: float,
    buffer_scale: float = 1.0,
) -> Vector3:
    """Superposed field (ECEF components, Tesla) of all loop sources at a point."""
    point = geo_to_ecef_array(lat, lon, alt)[None, :]
    return Vector3.from_array(_field_at_points(sources, point, buffer_scale)[0])


def calculate_geo_field_grid(
    sources: Iterable[FieldSource],
    lat_range: tuple[float, float],
    lon_range: tuple[float, float],
    altitude: float,
    resolution: int = 20,
    buffer_scale: float = 1.0,
) -> list[FieldSample]:
    """Sample the superposed field on an inclusive lat/lon grid.

    Returns (resolution + 1)^2 samples ordered by latitude, then longitude.
    Cost is O(points x sources x segments).
    """
    if resolution < 1:
        raise ValueError(f"Grid resolution must be at least 1, got {resolution}")

    lats, lons = _grid_axes(lat_range, lon_range, resolution)
    LAT, LON = np.meshgrid(lats, lons, indexing="ij")
    points = geo_to_ecef_array(LAT.ravel(), LON.ravel(), altitude)

    fields = _field_at_points(list(sources), points, buffer_scale)
    mags = np.linalg.norm(fields, axis=-1)

    return [
        FieldSample(
            lat=float(la), lon=float(lo), alt=float(altitude),
            field=Vector3.from_array(b), magnitude=float(m),
        )
        for la, lo, b, m in zip(LAT.ravel(), LON.ravel(), fields, mags)
    ]


def _grid_axes(
    lat_range: tuple[float, float],
    lon_range: tuple[float, float],
    resolution: int,
) -> tuple[np.ndarray, np.ndarray]:
    lat_min, lat_max = lat_range
    lon_min, lon_max = lon_range
    lat_step = (lat_max - lat_min) / resolution
    lon_step = (lon_max - lon_min) / resolution
    idx = np.arange(resolution + 1)
    return lat_min + idx * lat_step, lon_min + idx * lon_step


def atmospheric_attenuation(frequency: float, distance: float, altitude: float = 0.0) -> float:
    """Linear amplitude factor after ``distance`` metres of Earth-ionosphere travel.

    Flat per-band attenuation: 2 dB/Mm below 3 kHz (ELF), 3 dB/Mm below
    30 kHz (VLF), 5 dB/Mm above. No waveguide-mode solve; ``altitude`` does
    not enter this model.
    """
    if frequency < 3000:
        db_per_mm = 2.0
    elif frequency < 30000:
        db_per_mm = 3.0
    else:
        db_per_mm = 5.0

    total_db = db_per_mm * (distance / 1e6)
    return 10 ** (-total_db / 20)


def loop_center_field(radius: float, turns: float, current: float) -> float:
    """Closed-form |B| at the centre of a flat circular loop, mu_0 N I / 2a."""
    if radius <= 0:
        return 0.0
    return MU_0 * turns * current / (2 * radius)


class MagneticsAnalyzer:
    """Field grid analysis over a set of loop sources, for reports and plots."""

    def run(
        self,
        sources: list[FieldSource],
        settings: SimulationSettings,
        lat_range: tuple[float, float],
        lon_range: tuple[float, float],
        altitude: float = 0.0,
        resolution: int | None = None,
    ) -> AnalysisResult:
        warnings: list[str] = []
        data: dict[str, Any] = {}
        resolution = resolution or settings.field_resolution
        scale = settings.buffer_scale

        loops = _loop_sources(sources)
        for src in sources:
            if src.type != "loop":
                warnings.append(
                    f"Source '{src.name or src.type}' of type '{src.type}' is not a loop; ignored"
                )
        if not loops:
            return AnalysisResult(
                success=False,
                analysis="magnetics",
                errors=["No loop sources to evaluate"],
                warnings=warnings,
            )

        data["sources"] = [
            {
                **src.to_dict(),
                "center_field_tesla": loop_center_field(src.radius, src.turns, src.current),
            }
            for src in loops
        ]

        logger.info(
            "Computing %dx%d field grid for %d loop source(s)",
            resolution + 1, resolution + 1, len(loops),
        )
        lats, lons = _grid_axes(lat_range, lon_range, resolution)
        LAT, LON = np.meshgrid(lats, lons, indexing="ij")
        points = geo_to_ecef_array(LAT, LON, altitude).reshape(-1, 3)
        fields = _field_at_points(loops, points, scale).reshape(LAT.shape + (3,))
        enu = ecef_vector_to_enu(fields, LAT, LON)
        bmag = np.linalg.norm(fields, axis=-1)

        data["field_grid"] = {
            "resolution": resolution,
            "altitude_m": altitude,
            "buffer_scale": scale,
            "lat_deg": lats.tolist(),
            "lon_deg": lons.tolist(),
            "bx_tesla": fields[..., 0].tolist(),
            "by_tesla": fields[..., 1].tolist(),
            "bz_tesla": fields[..., 2].tolist(),
            "east_tesla": enu[..., 0].tolist(),
            "north_tesla": enu[..., 1].tolist(),
            "up_tesla": enu[..., 2].tolist(),
            "bmag_tesla": bmag.tolist(),
            "min_b_tesla": float(np.min(bmag)),
            "max_b_tesla": float(np.max(bmag)),
        }
        data["analysis"] = "magnetics"

        max_b = float(np.max(bmag))
        if max_b > EARTH_FIELD_AVERAGE:
            warnings.append(
                f"Peak field {max_b * 1e6:.2f} uT exceeds the average geomagnetic "
                f"field ({EARTH_FIELD_AVERAGE * 1e6:.0f} uT)"
            )

        delta = buffer_delta(scale)
        for src in loops:
            # grid points horizontally within one loop radius + buffer of the wire
            d = np.array([
                haversine_distance(src.lat, src.lon, la, lo)
                for la, lo in zip(LAT.ravel(), LON.ravel())
            ])
            near_wire = np.abs(d - src.radius) < delta
            if abs(altitude - src.alt) < delta and np.any(near_wire):
                warnings.append(
                    f"Regularization buffer active for {int(np.sum(near_wire))} grid "
                    f"point(s) near source '{src.name or 'loop'}'"
                )

        return AnalysisResult(
            success=True, analysis="magnetics", data=data, warnings=warnings
        )
