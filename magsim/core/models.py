"""Data models for the persistent circuit project."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from .catalog import COIL_TYPES, DEFAULT_CATALOG, SOURCE_TYPES, ComponentCatalog
from .config import SimulationSettings


class FailureType(enum.Enum):
    NONE = "none"
    THERMAL = "thermal"
    ELECTRICAL = "electrical"
    MAGNETIC = "magnetic"


class WarningLevel(enum.Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BranchType(enum.Enum):
    RESISTOR = "resistor"
    CAPACITOR = "capacitor"
    INDUCTOR = "inductor"
    WIRE = "wire"
    SOURCE = "source"


# --- Property variants -------------------------------------------------------

_CAMEL_TO_SNAKE = {
    "crossSection": "cross_section",
    "innerRadius": "inner_radius",
    "outerRadius": "outer_radius",
    "isOpen": "is_open",
    "pulseWidth": "pulse_width",
    "dutyCycle": "duty_cycle",
}
_SNAKE_TO_CAMEL = {v: k for k, v in _CAMEL_TO_SNAKE.items()}

_INT_FIELDS = {"turns"}
_BOOL_FIELDS = {"is_open"}
_STR_FIELDS = {"material"}


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _BOOL_FIELDS:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if name in _STR_FIELDS:
        return str(value)
    if name in _INT_FIELDS:
        return int(float(value))
    return float(value)


@dataclass
class ComponentProperties:
    """Base for the per-type property records."""

    def update(self, values: dict[str, Any]) -> list[str]:
        """Apply known keys (camelCase or snake_case); returns the keys applied."""
        names = {f.name for f in fields(self)}
        applied = []
        for key, value in values.items():
            attr = _CAMEL_TO_SNAKE.get(key, key)
            if attr in names:
                setattr(self, attr, _coerce(attr, value))
                applied.append(key)
        return applied

    def to_dict(self) -> dict[str, Any]:
        return {
            _SNAKE_TO_CAMEL.get(f.name, f.name): getattr(self, f.name)
            for f in fields(self)
        }


@dataclass
class EmptyProps(ComponentProperties):
    pass


@dataclass
class ResistorProps(ComponentProperties):
    resistance: float | None = None
    material: str | None = None


@dataclass
class CapacitorProps(ComponentProperties):
    capacitance: float | None = None


@dataclass
class InductorProps(ComponentProperties):
    inductance: float | None = None
    material: str | None = None


@dataclass
class SourceProps(ComponentProperties):
    voltage: float | None = None
    frequency: float | None = None
    pulse_width: float | None = None
    duty_cycle: float | None = None


@dataclass
class CoilProps(ComponentProperties):
    turns: int | None = None
    radius: float | None = None
    current: float | None = None
    length: float | None = None
    inner_radius: float | None = None
    outer_radius: float | None = None
    separation: float | None = None
    inductance: float | None = None
    material: str | None = None


@dataclass
class WireProps(ComponentProperties):
    length: float | None = None
    cross_section: float | None = None
    material: str | None = None


@dataclass
class SwitchProps(ComponentProperties):
    is_open: bool | None = None
    voltage: float | None = None


PROPERTY_TYPES: dict[str, type[ComponentProperties]] = {
    "resistor": ResistorProps,
    "capacitor": CapacitorProps,
    "inductor": InductorProps,
    "wire": WireProps,
    "switch": SwitchProps,
    "relay": SwitchProps,
    "transformer": CoilProps,
    **{t: SourceProps for t in SOURCE_TYPES},
    **{t: CoilProps for t in COIL_TYPES},
}


def make_properties(type_: str, values: dict[str, Any] | None = None) -> ComponentProperties:
    props = PROPERTY_TYPES.get(type_, EmptyProps)()
    if values:
        props.update(values)
    return props


# --- Components and wires ------------------------------------------------------

@dataclass
class Port:
    id: str
    position: tuple[float, float]
    type: str = "bidirectional"
    connected_to: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "position": {"x": self.position[0], "y": self.position[1]},
            "type": self.type,
            "connectedTo": self.connected_to,
        }


@dataclass
class CircuitComponent:
    id: str
    type: str
    category: str
    name: str
    position: tuple[float, float]
    ports: list[Port] = field(default_factory=list)
    properties: ComponentProperties = field(default_factory=EmptyProps)
    rotation: float = 0.0

    # runtime state
    temperature: float = 25.0  # C
    current_flow: float = 0.0  # A
    voltage_drop: float = 0.0  # V
    power_dissipation: float = 0.0  # W
    is_failed: bool = False
    failure_type: FailureType = FailureType.NONE
    warning_level: WarningLevel = WarningLevel.NONE

    @property
    def material(self) -> str | None:
        return getattr(self.properties, "material", None)

    def port_ids(self) -> list[str]:
        return [p.id for p in self.ports]

    def reset_runtime(self, ambient: float) -> None:
        self.temperature = ambient
        self.current_flow = 0.0
        self.voltage_drop = 0.0
        self.power_dissipation = 0.0
        self.is_failed = False
        self.failure_type = FailureType.NONE
        self.warning_level = WarningLevel.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "name": self.name,
            "position": {"x": self.position[0], "y": self.position[1]},
            "rotation": self.rotation,
            "ports": [p.to_dict() for p in self.ports],
            "properties": self.properties.to_dict(),
            "temperature": self.temperature,
            "currentFlow": self.current_flow,
            "voltageDrop": self.voltage_drop,
            "powerDissipation": self.power_dissipation,
            "isFailed": self.is_failed,
            "failureType": self.failure_type.value,
            "warningLevel": self.warning_level.value,
        }


@dataclass
class Wire:
    id: str
    start_port_id: str
    end_port_id: str
    start_component_id: str
    end_component_id: str
    points: list[tuple[float, float]] = field(default_factory=list)
    material: str = "copper"
    cross_section: float = 1e-6  # m^2
    length: float = 0.1  # m
    current: float = 0.0  # A
    temperature: float = 25.0  # C

    def connects_component(self, component_id: str) -> bool:
        return component_id in (self.start_component_id, self.end_component_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startPortId": self.start_port_id,
            "endPortId": self.end_port_id,
            "startComponentId": self.start_component_id,
            "endComponentId": self.end_component_id,
            "points": [{"x": x, "y": y} for x, y in self.points],
            "material": self.material,
            "crossSection": self.cross_section,
            "length": self.length,
            "current": self.current,
            "temperature": self.temperature,
        }


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:13]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_component(
    type_: str,
    position: tuple[float, float],
    catalog: ComponentCatalog = DEFAULT_CATALOG,
    component_id: str | None = None,
    ambient: float = 25.0,
) -> CircuitComponent | None:
    """Build a component with catalog defaults; None for an unknown type."""
    definition = catalog.get(type_)
    if definition is None:
        return None

    cid = component_id or _new_id(type_)
    positions = catalog.port_positions(type_)
    ports = [
        Port(id=f"{cid}_port_{i}", position=positions[i])
        for i in range(definition.port_count)
    ]
    return CircuitComponent(
        id=cid,
        type=type_,
        category=definition.category,
        name=definition.label,
        position=(float(position[0]), float(position[1])),
        ports=ports,
        properties=make_properties(type_, definition.default_props),
        temperature=ambient,
    )


# Component attributes an update may set directly; everything else is
# routed to the property variant.
_COMPONENT_UPDATABLE = {
    "name": str,
    "rotation": float,
    "temperature": float,
}


@dataclass
class CircuitProject:
    """Aggregate root owning components, wires and settings."""

    name: str = "New Circuit"
    description: str = ""
    id: str = field(default_factory=lambda: _new_id("project"))
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    components: list[CircuitComponent] = field(default_factory=list)
    wires: list[Wire] = field(default_factory=list)
    settings: SimulationSettings = field(default_factory=SimulationSettings)

    def touch(self) -> None:
        self.updated_at = _now()

    # -- lookups --

    def get_component(self, component_id: str) -> CircuitComponent | None:
        for comp in self.components:
            if comp.id == component_id:
                return comp
        return None

    def get_wire(self, wire_id: str) -> Wire | None:
        for wire in self.wires:
            if wire.id == wire_id:
                return wire
        return None

    def find_port_owner(self, port_id: str) -> CircuitComponent | None:
        for comp in self.components:
            if port_id in comp.port_ids():
                return comp
        return None

    def components_of_type(self, *types: str) -> list[CircuitComponent]:
        return [c for c in self.components if c.type in types]

    # -- mutations --

    def add_component(
        self,
        type_: str,
        position: tuple[float, float],
        catalog: ComponentCatalog = DEFAULT_CATALOG,
        component_id: str | None = None,
    ) -> CircuitComponent | None:
        comp = create_component(
            type_, position, catalog, component_id,
            ambient=self.settings.ambient_temperature,
        )
        if comp is None:
            return None
        self.components.append(comp)
        self.touch()
        return comp

    def update_component(self, component_id: str, updates: dict[str, Any]) -> bool:
        comp = self.get_component(component_id)
        if comp is None:
            return False
        prop_updates = {}
        for key, value in updates.items():
            if key in _COMPONENT_UPDATABLE:
                setattr(comp, key, _COMPONENT_UPDATABLE[key](value))
            else:
                prop_updates[key] = value
        comp.properties.update(prop_updates)
        self.touch()
        return True

    def move_component(self, component_id: str, position: tuple[float, float]) -> bool:
        comp = self.get_component(component_id)
        if comp is None:
            return False
        comp.position = (float(position[0]), float(position[1]))
        self.touch()
        return True

    def rotate_component(self, component_id: str, angle: float) -> bool:
        comp = self.get_component(component_id)
        if comp is None:
            return False
        comp.rotation = float(angle) % 360.0
        self.touch()
        return True

    def remove_component(self, component_id: str) -> bool:
        comp = self.get_component(component_id)
        if comp is None:
            return False
        self.components.remove(comp)
        for wire in [w for w in self.wires if w.connects_component(component_id)]:
            self._detach_wire(wire)
        self.touch()
        return True

    def add_wire(
        self,
        start_component_id: str,
        start_port_id: str,
        end_component_id: str,
        end_port_id: str,
        points: list[tuple[float, float]] | None = None,
        material: str = "copper",
    ) -> Wire:
        wire = Wire(
            id=_new_id("wire"),
            start_port_id=start_port_id,
            end_port_id=end_port_id,
            start_component_id=start_component_id,
            end_component_id=end_component_id,
            points=list(points or []),
            material=material,
            temperature=self.settings.ambient_temperature,
        )
        self.wires.append(wire)
        self._set_port_link(start_component_id, start_port_id, end_port_id)
        self._set_port_link(end_component_id, end_port_id, start_port_id)
        self.touch()
        return wire

    def remove_wire(self, wire_id: str) -> bool:
        wire = self.get_wire(wire_id)
        if wire is None:
            return False
        self._detach_wire(wire)
        self.touch()
        return True

    def _detach_wire(self, wire: Wire) -> None:
        self.wires.remove(wire)
        self._set_port_link(wire.start_component_id, wire.start_port_id, None)
        self._set_port_link(wire.end_component_id, wire.end_port_id, None)

    def _set_port_link(self, component_id: str, port_id: str, other: str | None) -> None:
        comp = self.get_component(component_id)
        if comp is None:
            return
        for port in comp.ports:
            if port.id == port_id:
                port.connected_to = other

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "components": [c.to_dict() for c in self.components],
            "wires": [w.to_dict() for w in self.wires],
            "settings": self.settings.to_dict(),
        }
