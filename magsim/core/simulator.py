"""Simulation orchestrator: owns the project, drives solver and thermal model."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..analysis import metrics, solver
from ..analysis.impedance import wire_resistance
from ..analysis.magnetics import FieldSample, FieldSource, calculate_geo_field_grid, field_at
from ..analysis.thermal import ThermalModel
from .catalog import DEFAULT_CATALOG, ComponentCatalog
from .config import SimulationState, ValidationResult, serialize
from .constants import DEFAULT_LIMITS, SimulationLimits
from .materials import MaterialTable
from .models import CircuitComponent, CircuitProject, Wire
from .validation import validate_circuit
from .vector import Vector3

logger = logging.getLogger(__name__)

VIEW_MODES = ("schematic", "field3d", "largescale")

# sources whose drive frequency matters to reactive impedances
_AC_SOURCES = ("acSource", "pulseGenerator")


class CircuitSimulator:
    """Single-writer owner of a circuit project and its simulation state.

    All operations are synchronous; one ``step_simulation`` call advances the
    simulation by one time step.
    """

    def __init__(
        self,
        project: CircuitProject | None = None,
        catalog: ComponentCatalog = DEFAULT_CATALOG,
        materials: MaterialTable | None = None,
        limits: SimulationLimits = DEFAULT_LIMITS,
    ):
        self.project = project or CircuitProject()
        self.catalog = catalog
        self.materials = materials or MaterialTable()
        self.limits = limits
        self.state = SimulationState()
        self.thermal = ThermalModel(self.materials, limits)
        self.selected_component_id: str | None = None
        self.selected_wire_id: str | None = None
        self.hovered_component_id: str | None = None
        self.view_mode = "schematic"
        self.last_solution: solver.NodalSolution | None = None

    # -- components and wires --

    def add_component(self, type_: str, position: tuple[float, float]) -> CircuitComponent | None:
        return self.project.add_component(type_, position, self.catalog)

    def update_component(self, component_id: str, updates: dict[str, Any]) -> bool:
        return self.project.update_component(component_id, updates)

    def move_component(self, component_id: str, position: tuple[float, float]) -> bool:
        return self.project.move_component(component_id, position)

    def rotate_component(self, component_id: str, angle: float) -> bool:
        return self.project.rotate_component(component_id, angle)

    def remove_component(self, component_id: str) -> bool:
        removed = self.project.remove_component(component_id)
        if removed and self.selected_component_id == component_id:
            self.selected_component_id = None
        if self.selected_wire_id and self.project.get_wire(self.selected_wire_id) is None:
            self.selected_wire_id = None
        return removed

    def add_wire(
        self,
        start_component_id: str,
        start_port_id: str,
        end_component_id: str,
        end_port_id: str,
        points: list[tuple[float, float]] | None = None,
    ) -> Wire:
        return self.project.add_wire(
            start_component_id, start_port_id, end_component_id, end_port_id, points
        )

    def remove_wire(self, wire_id: str) -> bool:
        removed = self.project.remove_wire(wire_id)
        if removed and self.selected_wire_id == wire_id:
            self.selected_wire_id = None
        return removed

    # -- selection and view --

    def select_component(self, component_id: str | None) -> None:
        self.selected_component_id = component_id
        self.selected_wire_id = None

    def select_wire(self, wire_id: str | None) -> None:
        self.selected_wire_id = wire_id
        self.selected_component_id = None

    def hover_component(self, component_id: str | None) -> None:
        self.hovered_component_id = component_id

    def set_view_mode(self, mode: str) -> bool:
        if mode not in VIEW_MODES:
            return False
        self.view_mode = mode
        return True

    # -- project --

    def new_project(self, name: str = "New Circuit") -> None:
        self.project = CircuitProject(name=name)
        self.selected_component_id = None
        self.selected_wire_id = None
        self.hovered_component_id = None
        self.state = SimulationState()
        self.last_solution = None

    def update_settings(self, values: dict[str, Any]) -> None:
        self.project.settings.update(values)
        self.project.touch()

    # -- simulation control --

    def validate_circuit(self) -> ValidationResult:
        return validate_circuit(self.project, self.limits)

    def start_simulation(self) -> bool:
        result = self.validate_circuit()
        self.state.is_running = result.is_valid
        self.state.is_circuit_complete = result.is_valid
        self.state.errors = list(result.errors)
        self.state.warnings = list(result.warnings)
        if result.is_valid:
            logger.info("Simulation started for project '%s'", self.project.name)
        else:
            logger.info("Simulation not started: %d validation error(s)", len(result.errors))
        return result.is_valid

    def stop_simulation(self) -> None:
        self.state.is_running = False
        logger.info("Simulation stopped at t=%.6g s", self.state.time)

    def reset_simulation(self) -> None:
        ambient = self.project.settings.ambient_temperature
        for comp in self.project.components:
            comp.reset_runtime(ambient)
        for wire in self.project.wires:
            wire.current = 0.0
            wire.temperature = ambient
        self.state = SimulationState()
        self.last_solution = None
        logger.info("Simulation reset")

    def drive_frequency(self) -> float:
        if self.project.components_of_type(*_AC_SOURCES):
            return self.project.settings.frequency
        return 0.0

    def step_simulation(self, dt: float | None = None) -> None:
        """Advance one time step; no-op unless the simulation is running."""
        if not self.state.is_running:
            return

        settings = self.project.settings
        dt = settings.time_step if dt is None else dt
        ambient = settings.ambient_temperature

        graph = solver.build_graph(
            self.project, self.drive_frequency(), self.materials, self.limits
        )
        if graph.ground_node_id is None:
            return

        solution = solver.nodal_analysis(
            graph.nodes, graph.branches, graph.ground_node_id,
            min_resistance=self.limits.min_resistance,
        )
        currents = solver.calculate_branch_currents(
            graph.branches, solution.voltages, self.limits.min_resistance
        )
        self.last_solution = solution
        self.state.converged = solution.converged
        self.state.iterations = solution.iterations
        self.state.is_circuit_complete = solver.is_circuit_complete(graph.nodes, graph.branches)
        if not solution.converged:
            logger.warning(
                "Nodal solve did not converge in %d iterations at t=%.6g s",
                solution.iterations, self.state.time,
            )

        by_component: dict[str, list[solver.CircuitBranch]] = {}
        for b in graph.branches:
            if b.component_id is not None:
                by_component.setdefault(b.component_id, []).append(b)

        self._apply_branch_results(by_component, solution, currents)
        self._update_wires(graph, by_component, currents, dt, ambient)

        for comp in self.project.components:
            self.thermal.step_component(
                comp, dt, ambient,
                enable_thermal=settings.enable_thermal,
                enable_failures=settings.enable_failures,
            )

        self.state.time += dt
        self.state.steps += 1

    def _apply_branch_results(
        self,
        by_component: dict[str, list[solver.CircuitBranch]],
        solution: solver.NodalSolution,
        currents: dict[str, float],
    ) -> None:
        for comp in self.project.components:
            branches = by_component.get(comp.id)
            if not branches:
                # failed or non-conducting
                comp.current_flow = 0.0
                comp.voltage_drop = 0.0
                comp.power_dissipation = 0.0
                continue
            # multi-branch parts (transformer) report their first winding
            b = branches[0]
            current = currents.get(b.id, 0.0)
            comp.current_flow = current
            comp.voltage_drop = (
                solution.voltages.get(b.start_node, 0.0) - solution.voltages.get(b.end_node, 0.0)
            )
            comp.power_dissipation = sum(
                metrics.power_dissipation(currents.get(x.id, 0.0), x.impedance.real)
                for x in branches
                if x.type != solver.BranchType.SOURCE
            )

    def _update_wires(
        self,
        graph: solver.CircuitGraph,
        by_component: dict[str, list[solver.CircuitBranch]],
        currents: dict[str, float],
        dt: float,
        ambient: float,
    ) -> None:
        # conducting branch touching each port; source currents are not solved
        port_branch: dict[str, str] = {}
        for comp in self.project.components:
            for b in by_component.get(comp.id, ()):
                if b.type == solver.BranchType.SOURCE:
                    continue
                for port in comp.ports:
                    if graph.node_of(port.id) in (b.start_node, b.end_node):
                        port_branch.setdefault(port.id, b.id)

        settings = self.project.settings
        for wire in self.project.wires:
            bid = port_branch.get(wire.start_port_id) or port_branch.get(wire.end_port_id)
            wire.current = currents.get(bid, 0.0) if bid else 0.0
            if settings.enable_thermal:
                r = wire_resistance(
                    wire.length, wire.cross_section, wire.material,
                    wire.temperature, self.materials,
                )
                wire.temperature = self.thermal.step_wire(
                    wire.temperature, wire.current, r, dt, ambient, wire.material
                )

    # -- field queries --

    def field_at(
        self,
        sources: list[FieldSource],
        lat: float, lon: float, alt: float,
        buffer_scale: float | None = None,
    ) -> Vector3:
        scale = self.project.settings.buffer_scale if buffer_scale is None else buffer_scale
        return field_at(sources, lat, lon, alt, scale)

    def field_grid(
        self,
        sources: list[FieldSource],
        lat_range: tuple[float, float],
        lon_range: tuple[float, float],
        altitude: float,
        resolution: int | None = None,
        buffer_scale: float | None = None,
    ) -> list[FieldSample]:
        settings = self.project.settings
        return calculate_geo_field_grid(
            sources, lat_range, lon_range, altitude,
            settings.field_resolution if resolution is None else resolution,
            settings.buffer_scale if buffer_scale is None else buffer_scale,
        )

    # -- export and persistence --

    def snapshot(self) -> dict[str, Any]:
        return {
            "project": self.project.to_dict(),
            "simulation": self.state.to_dict(),
            "selectedComponentId": self.selected_component_id,
            "selectedWireId": self.selected_wire_id,
            "viewMode": self.view_mode,
        }

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(serialize(self.snapshot()), f, indent=2)

    @classmethod
    def load(
        cls,
        path: Path,
        catalog: ComponentCatalog = DEFAULT_CATALOG,
        materials: MaterialTable | None = None,
        limits: SimulationLimits = DEFAULT_LIMITS,
    ) -> CircuitSimulator:
        from ..parsers.yaml_loader import load_snapshot

        project, data = load_snapshot(path, catalog)
        sim = cls(project, catalog, materials, limits)
        sim.selected_component_id = data.get("selectedComponentId")
        sim.selected_wire_id = data.get("selectedWireId")
        sim.set_view_mode(data.get("viewMode", "schematic"))
        return sim
