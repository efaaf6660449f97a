"""Complex impedance of circuit elements.

Impedances are plain ``complex`` values. Every constructor applies the
resistance floor or open-circuit saturation so the solver never divides by
zero.
"""

from __future__ import annotations

import math
from typing import Iterable

from ..core.constants import DEFAULT_LIMITS, MU_0
from ..core.materials import MaterialTable
from ..core.models import CoilProps
from ..core.vector import SATURATION, safe_inverse

# Conductor cross-section assumed for coil windings (~AWG 18)
WINDING_CROSS_SECTION = 1e-6  # m^2

_MATERIALS = MaterialTable()


def resistor(resistance: float, min_resistance: float = DEFAULT_LIMITS.min_resistance) -> complex:
    return complex(max(resistance, min_resistance), 0.0)


def capacitor(capacitance: float, frequency: float) -> complex:
    """Z = -j / (wC); an open circuit (saturated real) at DC or for C = 0."""
    if abs(frequency) < 1e-15 or abs(capacitance) < 1e-300:
        return complex(SATURATION, 0.0)
    omega = 2 * math.pi * frequency
    return complex(0.0, -1.0 / (omega * capacitance))


def inductor(inductance: float, frequency: float) -> complex:
    omega = 2 * math.pi * frequency
    return complex(0.0, omega * inductance)


def series(impedances: Iterable[complex]) -> complex:
    total = complex(0.0, 0.0)
    for z in impedances:
        total += z
    return total


def parallel(impedances: Iterable[complex]) -> complex:
    """1/Z = sum(1/Zi); a zero branch shorts the combination to the saturated floor."""
    admittance = complex(0.0, 0.0)
    for z in impedances:
        admittance += safe_inverse(z)
    return safe_inverse(admittance)


def wire_resistance(
    length: float,
    cross_section: float,
    material: str = "copper",
    temperature: float = 20.0,
    materials: MaterialTable = _MATERIALS,
) -> float:
    """R = rho * L * (1 + alpha (T - 20)) / A."""
    props = materials.get(material)
    if cross_section <= 0:
        return SATURATION
    temp_factor = 1 + props.thermal_coefficient * (temperature - 20.0)
    return props.resistivity * length * temp_factor / cross_section


def coil_inductance(
    type_: str,
    props: CoilProps,
    materials: MaterialTable = _MATERIALS,
) -> float:
    """Geometric inductance estimate in henries.

    An explicit ``inductance`` property wins. Otherwise:
      coil      - short coil, treated as a solenoid of length 2r
      solenoid  - mu_0 mu_r N^2 pi r^2 / l
      toroid    - rectangular-section toroid, mu_0 mu_r N^2 h ln(b/a) / 2 pi, h = b - a
      helmholtz - two coils, no mutual term
    """
    if props.inductance is not None and props.inductance > 0:
        return props.inductance

    # the coil's material is its core
    mu = MU_0 * materials.get(props.material).permeability
    n = props.turns or 0
    r = props.radius or 0.0

    if type_ == "toroid":
        a = props.inner_radius or 0.0
        b = props.outer_radius or 0.0
        if a <= 0 or b <= a:
            return 0.0
        return mu * n**2 * (b - a) * math.log(b / a) / (2 * math.pi)

    if r <= 0:
        return 0.0
    if type_ == "solenoid":
        length = props.length or 2 * r
    else:
        length = 2 * r
    single = mu * n**2 * math.pi * r**2 / length
    return 2 * single if type_ == "helmholtz" else single


def winding_length(type_: str, props: CoilProps) -> float:
    n = props.turns or 0
    if type_ == "toroid":
        a = props.inner_radius or 0.0
        b = props.outer_radius or 0.0
        # one turn wraps the square cross-section
        return n * 4 * max(b - a, 0.0)
    length = n * 2 * math.pi * (props.radius or 0.0)
    return 2 * length if type_ == "helmholtz" else length


def winding_resistance(
    type_: str,
    props: CoilProps,
    temperature: float = 20.0,
    materials: MaterialTable = _MATERIALS,
) -> float:
    """DC resistance of the copper winding (the coil material sets the core only)."""
    return wire_resistance(
        winding_length(type_, props),
        WINDING_CROSS_SECTION,
        "copper",
        temperature,
        materials,
    )


def coil_impedance(
    type_: str,
    props: CoilProps,
    frequency: float,
    temperature: float = 20.0,
    materials: MaterialTable = _MATERIALS,
    min_resistance: float = DEFAULT_LIMITS.min_resistance,
) -> complex:
    """Winding resistance in series with the geometric inductance."""
    return series([
        resistor(winding_resistance(type_, props, temperature, materials), min_resistance),
        inductor(coil_inductance(type_, props, materials), frequency),
    ])
