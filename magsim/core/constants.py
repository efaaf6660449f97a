"""Physical constants, buffer constants and simulation limits."""

from __future__ import annotations

import math
from dataclasses import dataclass


# Regularization buffer: the floor length is fixed; it approximates the gap
# between the golden ratio and pi/2 (PHI - ALPHA_PI agrees to about 1e-7 m).
PHI = 1.618033988749895
ALPHA_PI = math.pi / 2
BUFFER_DELTA = 0.04723756005394984

# Physical constants (SI)
MU_0 = 1.25663706212e-6  # H/m
EPSILON_0 = 8.854187817e-12  # F/m
SPEED_OF_LIGHT = 299792458.0  # m/s
ELECTRON_CHARGE = 1.602176634e-19  # C
BOLTZMANN = 1.380649e-23  # J/K

# WGS-84 ellipsoid
EARTH_RADIUS_EQUATORIAL = 6378137.0  # m, semi-major axis
EARTH_RADIUS_POLAR = 6356752.314245  # m, semi-minor axis
EARTH_FLATTENING = 1 / 298.257223563
EARTH_ECCENTRICITY_SQ = 0.00669437999014

# Geomagnetic reference values (Tesla, A*m^2)
EARTH_FIELD_MIN = 25e-6
EARTH_FIELD_MAX = 65e-6
EARTH_FIELD_AVERAGE = 50e-6
EARTH_DIPOLE_MOMENT = 7.94e22


@dataclass(frozen=True)
class SimulationLimits:
    max_current: float = 1000.0  # A
    max_voltage: float = 10000.0  # V
    max_temperature: float = 500.0  # C
    max_field_strength: float = 100.0  # T
    min_resistance: float = 1e-6  # Ohm
    grid_resolution: int = 50  # points per axis
    time_step: float = 1e-6  # s


DEFAULT_LIMITS = SimulationLimits()
