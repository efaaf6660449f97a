"""Circuit and component rule checks.

Rule violations are returned as messages, never raised; the caller decides
whether they block a simulation start.
"""

from __future__ import annotations

from .catalog import COIL_TYPES, SOURCE_TYPES
from .config import ValidationResult
from .constants import DEFAULT_LIMITS, SimulationLimits
from .models import CircuitComponent, CircuitProject


def _positive(value: float | None) -> bool:
    return value is None or value > 0


def validate_component(
    component: CircuitComponent, limits: SimulationLimits = DEFAULT_LIMITS
) -> list[str]:
    errors: list[str] = []
    props = component.properties
    name = component.name
    t = component.type

    if t == "resistor" and not _positive(props.resistance):
        errors.append(f"{name}: Resistance must be positive")
    elif t == "capacitor" and not _positive(props.capacitance):
        errors.append(f"{name}: Capacitance must be positive")
    elif t == "inductor" and not _positive(props.inductance):
        errors.append(f"{name}: Inductance must be positive")
    elif t in SOURCE_TYPES:
        if props.voltage is not None and abs(props.voltage) > limits.max_voltage:
            errors.append(f"{name}: Voltage exceeds safe limits")
    elif t in COIL_TYPES:
        if not _positive(props.turns):
            errors.append(f"{name}: Number of turns must be positive")
        if t == "toroid":
            a, b = props.inner_radius, props.outer_radius
            if not _positive(a) or not _positive(b):
                errors.append(f"{name}: Radius must be positive")
            elif a is not None and b is not None and b <= a:
                errors.append(f"{name}: Outer radius must exceed inner radius")
        elif not _positive(props.radius):
            errors.append(f"{name}: Radius must be positive")
    elif t == "wire" and not _positive(props.cross_section):
        errors.append(f"{name}: Cross-section must be positive")

    if component.temperature > limits.max_temperature:
        errors.append(f"{name}: Component overheating")

    return errors


def validate_circuit(
    project: CircuitProject, limits: SimulationLimits = DEFAULT_LIMITS
) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not project.components_of_type(*SOURCE_TYPES):
        errors.append("Circuit requires a power source")
    if not project.components_of_type("ground"):
        errors.append("Circuit requires a ground connection")

    wired_ports: set[str] = set()
    for wire in project.wires:
        for cid in (wire.start_component_id, wire.end_component_id):
            if project.get_component(cid) is None:
                errors.append(f"Wire {wire.id} refers to missing component {cid}")
        wired_ports.add(wire.start_port_id)
        wired_ports.add(wire.end_port_id)

    for comp in project.components:
        if comp.type == "ground" or not comp.ports:
            continue
        if not any(pid in wired_ports for pid in comp.port_ids()):
            warnings.append(f"{comp.name} is not connected to the circuit")

    for comp in project.components:
        errors.extend(validate_component(comp, limits))

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
