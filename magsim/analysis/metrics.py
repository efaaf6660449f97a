"""Lumped circuit figures of merit.

Plain closed-form helpers; the orchestrator computes component dissipation
with ``power_dissipation``.
A zero denominator yields 0.0 rather than an exception.
"""

from __future__ import annotations

import math


def power_dissipation(current: float, resistance: float) -> float:
    """P = I^2 R."""
    return current**2 * resistance


def temperature_rise(
    power: float,
    thermal_resistance: float = 50.0,
    ambient: float = 25.0,
) -> float:
    """Steady-state temperature (C) for ``power`` watts through R_th (C/W)."""
    return ambient + power * thermal_resistance


def efficiency(output_power: float, input_power: float) -> float:
    """Output over input power, in percent."""
    if abs(input_power) < 1e-15:
        return 0.0
    return output_power / input_power * 100


def voltage_regulation(no_load_voltage: float, full_load_voltage: float) -> float:
    """(V_nl - V_fl) / V_fl, in percent."""
    if abs(full_load_voltage) < 1e-15:
        return 0.0
    return (no_load_voltage - full_load_voltage) / full_load_voltage * 100


def quality_factor(inductance: float, resistance: float, frequency: float) -> float:
    if abs(resistance) < 1e-15:
        return 0.0
    return 2 * math.pi * frequency * inductance / resistance


def resonant_frequency(inductance: float, capacitance: float) -> float:
    lc = inductance * capacitance
    if lc <= 0:
        return 0.0
    return 1 / (2 * math.pi * math.sqrt(lc))


def rc_time_constant(resistance: float, capacitance: float) -> float:
    return resistance * capacitance


def rl_time_constant(resistance: float, inductance: float) -> float:
    if abs(resistance) < 1e-15:
        return 0.0
    return inductance / resistance
