"""3-D vector and complex-number primitives shared by every engine module."""

from __future__ import annotations

import cmath
import math
import sys
from dataclasses import dataclass

import numpy as np


# Stand-in for an infinite impedance / quotient: large but always finite.
SATURATION = sys.float_info.max

_NEAR_ZERO = 1e-15
_NEAR_ZERO_DIVISOR = math.sqrt(_NEAR_ZERO)


@dataclass(frozen=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def add(self, other: Vector3) -> Vector3:
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def subtract(self, other: Vector3) -> Vector3:
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scale(self, s: float) -> Vector3:
        return Vector3(self.x * s, self.y * s, self.z * s)

    def dot(self, other: Vector3) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector3) -> Vector3:
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def magnitude(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    def normalize(self) -> Vector3:
        """Unit vector in the same direction; +z for a (near) zero vector."""
        mag = self.magnitude()
        if mag < _NEAR_ZERO:
            return Vector3(0.0, 0.0, 1.0)
        return Vector3(self.x / mag, self.y / mag, self.z / mag)

    def __add__(self, other: Vector3) -> Vector3:
        return self.add(other)

    def __sub__(self, other: Vector3) -> Vector3:
        return self.subtract(other)

    def __mul__(self, s: float) -> Vector3:
        return self.scale(s)

    __rmul__ = __mul__

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> Vector3:
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    def is_finite(self) -> bool:
        return all(math.isfinite(c) for c in (self.x, self.y, self.z))


ZERO = Vector3()


def safe_divide(a: complex, b: complex) -> complex:
    """Complex division that saturates instead of blowing up on a zero divisor."""
    b = complex(b)
    # |b|^2 < 1e-15, compared on |b| so saturated divisors do not overflow
    if magnitude(b) < _NEAR_ZERO_DIVISOR:
        return complex(SATURATION, 0.0)
    q = complex(a) / b
    if not (math.isfinite(q.real) and math.isfinite(q.imag)):
        return complex(SATURATION, 0.0)
    return q


def safe_inverse(z: complex) -> complex:
    return safe_divide(1.0, z)


def from_polar(magnitude: float, phase: float) -> complex:
    return cmath.rect(magnitude, phase)


def magnitude(z: complex) -> float:
    """|z| without overflowing on saturated operands."""
    try:
        mag = abs(z)
    except OverflowError:
        return SATURATION
    return mag if math.isfinite(mag) else SATURATION
