"""Static component catalog: category, defaults and port layout per type."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any


CATEGORIES = {
    "source": "Power Sources",
    "passive": "Passive Components",
    "active": "Active Components",
    "magnetic": "Magnetic Components",
    "sensor": "Sensors",
    "switch": "Switches",
}

SOURCE_TYPES = frozenset({"dcSource", "acSource", "pulseGenerator"})
COIL_TYPES = frozenset({"coil", "solenoid", "toroid", "helmholtz"})

# port layouts exist for 1 to 4 ports
MAX_PORTS = 4


@dataclass(frozen=True)
class ComponentDefinition:
    type: str
    category: str
    label: str
    port_count: int
    width: float
    height: float
    default_props: dict[str, Any] = field(default_factory=dict)
    icon: str = ""
    color: str = ""


def _definitions(*defs: ComponentDefinition) -> dict[str, ComponentDefinition]:
    return {d.type: d for d in defs}


DEFAULT_DEFINITIONS = _definitions(
    ComponentDefinition(
        "resistor", "passive", "Resistor", 2, 80, 30,
        {"resistance": 1000.0}, "⏛", "hsl(25, 80%, 55%)",
    ),
    ComponentDefinition(
        "capacitor", "passive", "Capacitor", 2, 60, 40,
        {"capacitance": 1e-6}, "⊣⊢", "hsl(200, 70%, 50%)",
    ),
    ComponentDefinition(
        "inductor", "passive", "Inductor", 2, 80, 30,
        {"inductance": 1e-3}, "⌇", "hsl(280, 60%, 55%)",
    ),
    ComponentDefinition(
        "dcSource", "source", "DC Source", 2, 50, 50,
        {"voltage": 12.0}, "⊕", "hsl(120, 70%, 45%)",
    ),
    ComponentDefinition(
        "acSource", "source", "AC Source", 2, 50, 50,
        {"voltage": 120.0, "frequency": 60.0}, "∿", "hsl(120, 70%, 45%)",
    ),
    ComponentDefinition(
        "ground", "passive", "Ground", 1, 40, 40, {}, "⏚", "hsl(0, 0%, 50%)",
    ),
    ComponentDefinition(
        "wire", "passive", "Wire", 2, 40, 10,
        {"material": "copper", "crossSection": 1e-6, "length": 0.1},
        "─", "hsl(25, 80%, 55%)",
    ),
    ComponentDefinition(
        "coil", "magnetic", "Coil", 2, 60, 60,
        {"turns": 100, "radius": 0.01, "current": 1.0}, "◎", "hsl(280, 60%, 55%)",
    ),
    ComponentDefinition(
        "solenoid", "magnetic", "Solenoid", 2, 100, 40,
        {"turns": 500, "length": 0.1, "radius": 0.02, "current": 1.0},
        "⌬", "hsl(280, 60%, 55%)",
    ),
    ComponentDefinition(
        "toroid", "magnetic", "Toroid", 2, 70, 70,
        {"turns": 200, "innerRadius": 0.03, "outerRadius": 0.05, "current": 1.0},
        "◯", "hsl(280, 60%, 55%)",
    ),
    ComponentDefinition(
        "helmholtz", "magnetic", "Helmholtz Coils", 2, 100, 60,
        {"turns": 100, "radius": 0.1, "separation": 0.1, "current": 1.0},
        "◎◎", "hsl(280, 60%, 55%)",
    ),
    ComponentDefinition(
        "transformer", "magnetic", "Transformer", 4, 80, 60,
        {"turns": 100}, "⧫", "hsl(280, 60%, 55%)",
    ),
    ComponentDefinition(
        "switch", "switch", "Switch", 2, 60, 30,
        {"isOpen": True}, "⊗", "hsl(0, 0%, 50%)",
    ),
    ComponentDefinition(
        "relay", "switch", "Relay", 4, 70, 50,
        {"isOpen": True, "voltage": 5.0}, "⌻", "hsl(0, 0%, 50%)",
    ),
    ComponentDefinition(
        "transistor", "active", "Transistor", 3, 50, 50, {}, "⊿", "hsl(45, 70%, 50%)",
    ),
    ComponentDefinition(
        "pulseGenerator", "source", "Pulse Generator", 2, 70, 50,
        {"voltage": 5.0, "frequency": 1000.0, "pulseWidth": 0.5, "dutyCycle": 0.5},
        "⊞", "hsl(120, 70%, 45%)",
    ),
    ComponentDefinition(
        "hallSensor", "sensor", "Hall Sensor", 3, 40, 40, {}, "⌾", "hsl(200, 80%, 50%)",
    ),
    ComponentDefinition(
        "currentSensor", "sensor", "Current Sensor", 3, 50, 40, {}, "A", "hsl(200, 80%, 50%)",
    ),
    ComponentDefinition(
        "tempSensor", "sensor", "Temp Sensor", 2, 40, 40, {}, "🌡", "hsl(30, 90%, 55%)",
    ),
    ComponentDefinition(
        "junction", "passive", "Junction", 4, 20, 20, {}, "•", "hsl(220, 80%, 60%)",
    ),
)


class ComponentCatalog(Mapping[str, ComponentDefinition]):
    """Read-only lookup of component definitions keyed by type."""

    def __init__(self, definitions: Mapping[str, ComponentDefinition] | None = None):
        self._defs = dict(definitions if definitions is not None else DEFAULT_DEFINITIONS)

    def __getitem__(self, type_: str) -> ComponentDefinition:
        return self._defs[type_]

    def __iter__(self) -> Iterator[str]:
        return iter(self._defs)

    def __len__(self) -> int:
        return len(self._defs)

    def by_category(self, category: str) -> dict[str, ComponentDefinition]:
        return {t: d for t, d in self._defs.items() if d.category == category}

    @staticmethod
    def categories() -> dict[str, str]:
        return dict(CATEGORIES)

    def port_positions(self, type_: str) -> list[tuple[float, float]]:
        """Port offsets relative to the component's top-left corner."""
        definition = self._defs.get(type_)
        if definition is None:
            return []
        w, h = definition.width, definition.height

        if definition.port_count == 1:
            return [(w / 2, h)]
        if definition.port_count == 2:
            return [(0.0, h / 2), (w, h / 2)]
        if definition.port_count == 3:
            return [(0.0, h / 2), (w, h / 2), (w / 2, h)]
        if definition.port_count == 4:
            return [
                (0.0, h / 3),
                (0.0, 2 * h / 3),
                (w, h / 3),
                (w, 2 * h / 3),
            ]
        return [(w / 2, h / 2)]


DEFAULT_CATALOG = ComponentCatalog()
