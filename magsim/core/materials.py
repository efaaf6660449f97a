"""Material property table consumed read-only by the engine."""

from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class Material:
    name: str
    resistivity: float  # Ohm*m at 20C
    permeability: float  # relative
    conductivity: float  # S/m
    thermal_coefficient: float  # per C
    max_temperature: float  # C
    color: str = "transparent"


DEFAULT_MATERIALS: dict[str, Material] = {
    "copper": Material(
        name="copper",
        resistivity=1.68e-8,
        permeability=0.999994,
        conductivity=5.96e7,
        thermal_coefficient=0.00393,
        max_temperature=200.0,
        color="hsl(25, 80%, 55%)",
    ),
    "aluminum": Material(
        name="aluminum",
        resistivity=2.65e-8,
        permeability=1.000022,
        conductivity=3.77e7,
        thermal_coefficient=0.00429,
        max_temperature=150.0,
        color="hsl(220, 10%, 75%)",
    ),
    "iron": Material(
        name="iron",
        resistivity=9.71e-8,
        permeability=5000.0,  # highly variable
        conductivity=1.03e7,
        thermal_coefficient=0.00651,
        max_temperature=300.0,
        color="hsl(0, 0%, 45%)",
    ),
    "air": Material(
        name="air",
        resistivity=1e16,
        permeability=1.00000037,
        conductivity=0.0,
        thermal_coefficient=0.0,
        max_temperature=sys.float_info.max,
    ),
}


class MaterialTable(Mapping[str, Material]):
    """Immutable view over a set of materials.

    ``table[name]`` raises ``KeyError`` for an unknown material; ``get`` falls
    back to the default material (copper) so a typo in a component property
    never stops a simulation step.
    """

    def __init__(
        self,
        materials: Mapping[str, Material] | None = None,
        default: str = "copper",
    ):
        self._materials = dict(materials if materials is not None else DEFAULT_MATERIALS)
        if default not in self._materials:
            raise KeyError(f"Default material '{default}' not in table")
        self._default = default

    def __getitem__(self, name: str) -> Material:
        return self._materials[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._materials)

    def __len__(self) -> int:
        return len(self._materials)

    def get(self, name: str | None, default: Material | None = None) -> Material:  # type: ignore[override]
        if name is not None and name in self._materials:
            return self._materials[name]
        return default if default is not None else self._materials[self._default]

    @property
    def default(self) -> Material:
        return self._materials[self._default]
