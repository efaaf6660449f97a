"""Distance regularization for inverse-distance field laws.

Every 1/r, 1/r^2 and 1/r^3 evaluated by the field engine goes through the
regularized distance

    r_reg = sqrt(r^2 + (delta * scale)^2)

so the result is finite and positive for every real r, including r = 0,
without a branch on "is r zero". ``delta`` is the buffer constant, close to
PHI - pi/2; ``scale`` stretches the floor length to the problem's geometry
(1.0 means a floor of ~4.7 cm). For r >> delta*scale, r_reg -> r.

All functions accept floats or numpy arrays.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.constants import BUFFER_DELTA
from ..core.vector import Vector3


def buffer_delta(scale: float = 1.0) -> float:
    return BUFFER_DELTA * scale


def regularize_distance(r, scale: float = 1.0):
    delta = BUFFER_DELTA * scale
    return np.sqrt(r * r + delta * delta)


def regularize_distance_smooth(r, scale: float = 1.0):
    """Blend raw and regularized distance with a tanh(r/delta) weight.

    Near r = 0 the weight is 0 and the hard floor wins; well outside the
    buffer the weight is 1 and the raw distance wins. The blend has no kink
    at r ~ delta, which matters for field visualizations.
    """
    delta = BUFFER_DELTA * scale
    blend = np.tanh(np.abs(r) / delta)
    hard = np.sqrt(r * r + delta * delta)
    return blend * np.abs(r) + (1 - blend) * hard


def safe_inverse_distance(r, scale: float = 1.0):
    return 1.0 / regularize_distance(r, scale)


def safe_inverse_square_distance(r, scale: float = 1.0):
    r_reg = regularize_distance(r, scale)
    return 1.0 / (r_reg * r_reg)


def safe_inverse_cube_distance(r, scale: float = 1.0):
    r_reg = regularize_distance(r, scale)
    return 1.0 / (r_reg * r_reg * r_reg)


@dataclass(frozen=True)
class RegularizedVector:
    vector: Vector3
    magnitude: float


def regularize_vector(x: float, y: float, z: float, scale: float = 1.0) -> RegularizedVector:
    """Keep direction, stretch magnitude to the regularized distance.

    The zero vector maps to +z scaled by delta*scale, never to zero.
    """
    magnitude = float(np.sqrt(x * x + y * y + z * z))
    reg = float(regularize_distance(magnitude, scale))

    if magnitude == 0.0:
        return RegularizedVector(Vector3(0.0, 0.0, BUFFER_DELTA * scale), reg)

    factor = reg / magnitude
    return RegularizedVector(Vector3(x * factor, y * factor, z * factor), reg)


@dataclass(frozen=True)
class RegularizationInfo:
    original: float
    regularized: float
    delta: float
    was_regularized: bool
    strength: float  # 0 (untouched) .. 1 (r == 0)

    def to_dict(self) -> dict:
        return {
            "original": self.original,
            "regularized": self.regularized,
            "delta": self.delta,
            "wasRegularized": self.was_regularized,
            "regularizationStrength": self.strength,
        }


def regularization_info(r: float, scale: float = 1.0) -> RegularizationInfo:
    """Diagnostic only: did ``r`` fall inside the buffer, and how deep."""
    delta = BUFFER_DELTA * scale
    inside = r < delta
    return RegularizationInfo(
        original=r,
        regularized=float(regularize_distance(r, scale)),
        delta=delta,
        was_regularized=inside,
        strength=1.0 - r / delta if inside else 0.0,
    )
