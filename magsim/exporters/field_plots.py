"""Generate magnetic field visualizations over a geographic grid."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.colors import LogNorm

# metres per degree of latitude, spherical approximation
_M_PER_DEG = 111320.0


def generate_field_plots(field_data: dict[str, Any], output_dir: Path) -> list[Path]:
    """Generate all field visualizations. Returns list of output paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    generated: list[Path] = []

    grid = field_data.get("field_grid", {})
    sources = field_data.get("sources", [])
    if not grid:
        return generated

    generated.append(_plot_magnitude(grid, sources, output_dir))
    generated.append(_plot_log_heatmap(grid, sources, output_dir))
    generated.append(_plot_enu_vectors(grid, sources, output_dir))
    return generated


def _overlay_sources(ax, sources: list[dict], color: str) -> None:
    """Draw each loop as a circle in lat/lon degrees."""
    theta = np.linspace(0, 2 * np.pi, 121)
    for src in sources:
        r = src.get("radius", 0.0)
        lat0, lon0 = src["lat"], src["lon"]
        d_lat = r / _M_PER_DEG
        d_lon = r / (_M_PER_DEG * max(math.cos(math.radians(lat0)), 1e-6))
        ax.plot(lon0 + d_lon * np.cos(theta), lat0 + d_lat * np.sin(theta),
                color=color, linewidth=1.2, alpha=0.9)
        if src.get("name"):
            ax.annotate(src["name"], xy=(lon0, lat0), fontsize=7, color=color, ha="center")


def _plot_magnitude(grid: dict, sources: list[dict], output_dir: Path) -> Path:
    """Linear |B| heatmap in microtesla."""
    bmag_ut = np.array(grid["bmag_tesla"]) * 1e6
    lats = np.array(grid["lat_deg"])
    lons = np.array(grid["lon_deg"])

    fig, ax = plt.subplots(figsize=(10, 8))
    im = ax.pcolormesh(lons, lats, bmag_ut, cmap="inferno", shading="gouraud")
    fig.colorbar(im, label="B-field magnitude (uT)")
    _overlay_sources(ax, sources, "white")

    ax.set_xlabel("Longitude (deg)")
    ax.set_ylabel("Latitude (deg)")
    ax.set_title(f"Magnetic Field Magnitude at {grid.get('altitude_m', 0):.0f} m")

    path = output_dir / "field_magnitude.png"
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return path


def _plot_log_heatmap(grid: dict, sources: list[dict], output_dir: Path) -> Path:
    """Log-scale |B|, shows the far-field falloff the linear map hides."""
    bmag_ut = np.array(grid["bmag_tesla"]) * 1e6
    lats = np.array(grid["lat_deg"])
    lons = np.array(grid["lon_deg"])

    positive = bmag_ut[bmag_ut > 0]
    vmin = float(positive.min()) if positive.size else 1e-9
    vmax = float(bmag_ut.max()) if positive.size else 1.0
    vmax = max(vmax, vmin * 10)
    bmag_ut = np.maximum(bmag_ut, vmin)

    fig, ax = plt.subplots(figsize=(10, 8))
    im = ax.pcolormesh(
        lons, lats, bmag_ut,
        cmap="magma",
        norm=LogNorm(vmin=vmin, vmax=vmax),
        shading="gouraud",
    )
    fig.colorbar(im, label="B-field magnitude (uT, log)")
    _overlay_sources(ax, sources, "cyan")

    ax.set_xlabel("Longitude (deg)")
    ax.set_ylabel("Latitude (deg)")
    ax.set_title("Magnetic Field Magnitude (log scale)")

    path = output_dir / "field_log_heatmap.png"
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return path


def _plot_enu_vectors(grid: dict, sources: list[dict], output_dir: Path) -> Path:
    """Horizontal (East/North) field arrows over the vertical component."""
    east = np.array(grid["east_tesla"])
    north = np.array(grid["north_tesla"])
    up_ut = np.array(grid["up_tesla"]) * 1e6
    lats = np.array(grid["lat_deg"])
    lons = np.array(grid["lon_deg"])
    LON, LAT = np.meshgrid(lons, lats)

    fig, ax = plt.subplots(figsize=(12, 9))
    limit = float(np.max(np.abs(up_ut))) or 1.0
    im = ax.pcolormesh(
        lons, lats, up_ut,
        cmap="RdBu_r", vmin=-limit, vmax=limit, shading="gouraud", alpha=0.8,
    )
    fig.colorbar(im, label="B up component (uT)", shrink=0.8)

    step = max(1, min(east.shape) // 20)
    E = east[::step, ::step]
    N = north[::step, ::step]
    horiz = np.hypot(E, N)
    hmax = float(np.max(horiz)) or 1.0

    ax.quiver(
        LON[::step, ::step], LAT[::step, ::step],
        E / hmax, N / hmax,
        horiz * 1e6,
        cmap="viridis",
        scale=25,
        width=0.003,
    )
    _overlay_sources(ax, sources, "black")

    ax.set_xlabel("Longitude (deg)")
    ax.set_ylabel("Latitude (deg)")
    ax.set_title("Horizontal Field Direction (arrows) and Vertical Component")

    path = output_dir / "field_enu_vectors.png"
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return path
