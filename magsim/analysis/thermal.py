"""Lumped thermal model and failure state machine for circuit components.

Each component is a single thermal node with a thermal resistance to ambient
(C/W) and a thermal mass (J/C). Per step:

    Q_gen  = I^2 R
    Q_diss = (T - T_ambient) / R_th
    T_new  = T + (Q_gen - Q_diss) * dt / C_th

A component is overheating from half its material's maximum temperature and
fails above it. Failure is sticky until the simulation is reset.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.catalog import COIL_TYPES
from ..core.constants import DEFAULT_LIMITS, MU_0, SimulationLimits
from ..core.materials import MaterialTable
from ..core.models import CircuitComponent, FailureType, WarningLevel


@dataclass(frozen=True)
class ThermalProperties:
    thermal_resistance: float  # C/W
    thermal_mass: float  # J/C
    max_temperature: float  # C
    ambient_temperature: float = 25.0  # C


@dataclass(frozen=True)
class ThermalState:
    is_overheating: bool
    is_failed: bool
    temperature_ratio: float
    margin: float  # C below max temperature

    def to_dict(self) -> dict:
        return {
            "isOverheating": self.is_overheating,
            "isFailed": self.is_failed,
            "temperatureRatio": self.temperature_ratio,
            "margin": self.margin,
        }


class ThermalModel:
    """Thermal update and failure classification for components and wires."""

    # (thermal resistance C/W, thermal mass J/C) per catalog category
    CATEGORY_PROPERTIES = {
        "passive": (50.0, 0.5),
        "source": (5.0, 20.0),
        "magnetic": (10.0, 5.0),
        "switch": (80.0, 0.2),
        "active": (60.0, 0.3),
        "sensor": (100.0, 0.1),
    }
    WIRE_PROPERTIES = (100.0, 0.05)

    OVERHEAT_RATIO = 0.5
    # lower bound of each warning band, highest first
    WARNING_THRESHOLDS = (
        (0.95, WarningLevel.CRITICAL),
        (0.90, WarningLevel.HIGH),
        (0.80, WarningLevel.MEDIUM),
    )

    def __init__(
        self,
        materials: MaterialTable | None = None,
        limits: SimulationLimits = DEFAULT_LIMITS,
    ):
        self.materials = materials or MaterialTable()
        self.limits = limits

    def default_properties(
        self,
        type_: str,
        category: str,
        material: str | None = None,
        ambient: float = 25.0,
    ) -> ThermalProperties:
        if type_ == "wire":
            r_th, c_th = self.WIRE_PROPERTIES
        else:
            r_th, c_th = self.CATEGORY_PROPERTIES.get(category, self.CATEGORY_PROPERTIES["passive"])
        return ThermalProperties(
            thermal_resistance=r_th,
            thermal_mass=c_th,
            max_temperature=self.materials.get(material).max_temperature,
            ambient_temperature=ambient,
        )

    def properties_for(self, component: CircuitComponent, ambient: float = 25.0) -> ThermalProperties:
        return self.default_properties(
            component.type, component.category, component.material, ambient
        )

    @staticmethod
    def heat_generation(current: float, resistance: float) -> float:
        return current * current * resistance

    @staticmethod
    def heat_dissipation(temperature: float, props: ThermalProperties) -> float:
        return (temperature - props.ambient_temperature) / props.thermal_resistance

    def update_temperature(
        self,
        temperature: float,
        heat_generated: float,
        props: ThermalProperties,
        dt: float,
    ) -> float:
        """One explicit Euler step."""
        net = heat_generated - self.heat_dissipation(temperature, props)
        return temperature + net * dt / props.thermal_mass

    def thermal_state(
        self, temperature: float, power: float, props: ThermalProperties
    ) -> ThermalState:
        ratio = temperature / props.max_temperature
        return ThermalState(
            is_overheating=ratio >= self.OVERHEAT_RATIO,
            is_failed=temperature > props.max_temperature,
            temperature_ratio=ratio,
            margin=props.max_temperature - temperature,
        )

    def classify_warning(
        self,
        temperature: float,
        props: ThermalProperties,
        overheating: bool | None = None,
    ) -> WarningLevel:
        """Warning band of ``temperature``; inclusive lower bounds."""
        ratio = temperature / props.max_temperature
        if overheating is None:
            overheating = ratio >= self.OVERHEAT_RATIO
        if not overheating:
            return WarningLevel.NONE
        for threshold, level in self.WARNING_THRESHOLDS:
            if ratio >= threshold:
                return level
        return WarningLevel.LOW

    def check_failure(
        self, component: CircuitComponent, props: ThermalProperties
    ) -> tuple[bool, FailureType]:
        if component.temperature > props.max_temperature:
            return True, FailureType.THERMAL
        if abs(component.current_flow) > self.limits.max_current:
            return True, FailureType.ELECTRICAL
        if component.type in COIL_TYPES and self.center_field(component) > self.limits.max_field_strength:
            return True, FailureType.MAGNETIC
        return False, FailureType.NONE

    @staticmethod
    def center_field(component: CircuitComponent) -> float:
        """|B| at the centre of a coil-family component, mu_0 N I / 2r."""
        props = component.properties
        turns = getattr(props, "turns", None) or 0
        radius = getattr(props, "radius", None)
        if component.type == "toroid":
            a = getattr(props, "inner_radius", None) or 0.0
            b = getattr(props, "outer_radius", None) or 0.0
            radius = (a + b) / 2
        if not radius or radius <= 0:
            return 0.0
        current = abs(component.current_flow)
        return MU_0 * turns * current / (2 * radius)

    def step_component(
        self,
        component: CircuitComponent,
        dt: float,
        ambient: float,
        enable_thermal: bool = True,
        enable_failures: bool = True,
    ) -> ThermalState:
        """Advance one component: temperature, failure latch, warning level."""
        props = self.properties_for(component, ambient)
        if enable_thermal:
            component.temperature = self.update_temperature(
                component.temperature, component.power_dissipation, props, dt
            )

        state = self.thermal_state(component.temperature, component.power_dissipation, props)
        if enable_failures and not component.is_failed:
            failed, kind = self.check_failure(component, props)
            if failed:
                component.is_failed = True
                component.failure_type = kind

        component.warning_level = self.classify_warning(
            component.temperature, props, state.is_overheating
        )
        return state

    def step_wire(
        self,
        temperature: float,
        current: float,
        resistance: float,
        dt: float,
        ambient: float,
        material: str | None = None,
    ) -> float:
        props = self.default_properties("wire", "passive", material, ambient)
        return self.update_temperature(
            temperature, self.heat_generation(current, resistance), props, dt
        )
