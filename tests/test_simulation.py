"""Integration tests for the circuit simulation pipeline."""

import math
from pathlib import Path

import pytest

from magsim.analysis import impedance, metrics, solver
from magsim.analysis.magnetics import FieldSource
from magsim.analysis.thermal import ThermalModel, ThermalProperties
from magsim.core.catalog import DEFAULT_CATALOG
from magsim.core.config import SimulationSettings
from magsim.core.constants import DEFAULT_LIMITS, MU_0
from magsim.core.errors import CircuitLoadError
from magsim.core.models import (
    BranchType,
    CircuitProject,
    CoilProps,
    FailureType,
    ResistorProps,
    WarningLevel,
    create_component,
    make_properties,
)
from magsim.core.simulator import CircuitSimulator
from magsim.core.validation import validate_circuit, validate_component
from magsim.core.vector import SATURATION
from magsim.parsers.yaml_loader import load_catalog, load_project


EXAMPLES = Path(__file__).parent.parent / "examples"


@pytest.fixture
def resistor_project():
    return load_project(EXAMPLES / "single_resistor" / "circuit.yaml")


@pytest.fixture
def divider_project():
    return load_project(EXAMPLES / "divider" / "circuit.yaml")


@pytest.fixture
def overheat_project():
    return load_project(EXAMPLES / "overheat" / "circuit.yaml")


def _solve(project):
    graph = solver.build_graph(project)
    solution = solver.nodal_analysis(graph.nodes, graph.branches, graph.ground_node_id)
    currents = solver.calculate_branch_currents(graph.branches, solution.voltages)
    return graph, solution, currents


def _port_voltage(graph, solution, project, component_id, index):
    port = project.get_component(component_id).ports[index]
    return solution.voltages[graph.node_of(port.id)]


class TestYAMLLoader:
    def test_load_resistor(self, resistor_project):
        assert resistor_project.name == "single_resistor"
        assert len(resistor_project.components) == 3
        assert len(resistor_project.wires) == 3
        assert resistor_project.get_component("R1").properties.resistance == 100.0

    def test_load_divider_settings(self, divider_project):
        assert divider_project.settings.time_step == pytest.approx(1e-3)
        assert divider_project.settings.enable_thermal is True

    def test_wires_link_ports(self, resistor_project):
        v1 = resistor_project.get_component("V1")
        assert v1.ports[0].connected_to == "R1_port_0"

    def test_unknown_type(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("components:\n  - {id: X1, type: fluxCapacitor}\n")
        with pytest.raises(CircuitLoadError, match="fluxCapacitor"):
            load_project(path)

    def test_bad_wire_endpoint(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "components:\n  - {id: R1, type: resistor}\n"
            "wires:\n  - {from: R1.0, to: R9.1}\n"
        )
        with pytest.raises(CircuitLoadError, match="R9"):
            load_project(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("components: [unclosed\n")
        with pytest.raises(CircuitLoadError):
            load_project(path)

    def test_load_catalog(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "components:\n"
            "  resistor: {category: passive, label: R, ports: 2,"
            " defaultProps: {resistance: 47}}\n"
        )
        catalog = load_catalog(path)
        assert list(catalog) == ["resistor"]
        assert catalog["resistor"].default_props == {"resistance": 47}

    @pytest.mark.parametrize(
        "entry",
        [
            "{id: R1, type: resistor, properties: {resistance: abc}}",
            "{id: R1, type: resistor, failureType: melted}",
            "{id: R1, type: resistor, warningLevel: dire}",
            "{id: R1, type: resistor, rotation: sideways}",
            "R1",
        ],
    )
    def test_invalid_component_values(self, tmp_path, entry):
        path = tmp_path / "bad.yaml"
        path.write_text(f"components:\n  - {entry}\n")
        with pytest.raises(CircuitLoadError):
            load_project(path)

    def test_invalid_wire_values(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "components:\n  - {id: R1, type: resistor}\n  - {id: R2, type: resistor}\n"
            "wires:\n  - {from: R1.1, to: R2.0, crossSection: thick}\n"
        )
        with pytest.raises(CircuitLoadError):
            load_project(path)

    @pytest.mark.parametrize("ports", [0, 5])
    def test_catalog_port_count_out_of_range(self, tmp_path, ports):
        path = tmp_path / "catalog.yaml"
        path.write_text(f"components:\n  widget: {{category: active, ports: {ports}}}\n")
        with pytest.raises(CircuitLoadError, match="ports"):
            load_catalog(path)


class TestModels:
    def test_create_unknown_type(self):
        assert create_component("fluxCapacitor", (0, 0)) is None

    def test_port_ids(self):
        comp = create_component("relay", (0, 0), component_id="K1")
        assert comp.port_ids() == ["K1_port_0", "K1_port_1", "K1_port_2", "K1_port_3"]
        assert comp.properties.is_open is True

    def test_property_variant(self):
        props = make_properties("resistor", {"resistance": "220", "bogus": 1})
        assert isinstance(props, ResistorProps)
        assert props.resistance == 220.0
        assert not hasattr(props, "bogus")

    def test_update_camel_case(self):
        project = CircuitProject()
        comp = project.add_component("toroid", (0, 0))
        assert project.update_component(comp.id, {"innerRadius": 0.01, "name": "T1"})
        assert comp.properties.inner_radius == 0.01
        assert comp.name == "T1"

    def test_rotate_wraps(self):
        project = CircuitProject()
        comp = project.add_component("resistor", (0, 0))
        project.rotate_component(comp.id, 450)
        assert comp.rotation == 90.0

    def test_remove_cascades_wires(self, divider_project):
        assert divider_project.remove_component("R1")
        assert len(divider_project.wires) == 2
        assert divider_project.get_component("V1").ports[0].connected_to is None

    def test_unknown_ids(self):
        project = CircuitProject()
        assert project.update_component("nope", {}) is False
        assert project.move_component("nope", (1, 1)) is False
        assert project.remove_wire("nope") is False


class TestImpedance:
    def test_resistor_floor(self):
        assert impedance.resistor(0.0) == complex(DEFAULT_LIMITS.min_resistance, 0)
        assert impedance.resistor(47.0) == complex(47.0, 0)

    def test_capacitor_dc_is_open(self):
        assert impedance.capacitor(1e-6, 0.0) == complex(SATURATION, 0)

    def test_capacitor_ac(self):
        z = impedance.capacitor(1e-6, 1000.0)
        assert z.real == 0.0
        assert z.imag == pytest.approx(-1 / (2 * math.pi * 1000 * 1e-6))

    def test_inductor(self):
        z = impedance.inductor(1e-3, 1000.0)
        assert z.imag == pytest.approx(2 * math.pi)

    def test_series_parallel(self):
        assert impedance.series([10, 20j, 5]) == complex(15, 20)
        assert impedance.parallel([100, 100]) == pytest.approx(complex(50, 0))

    def test_parallel_with_short_is_finite(self):
        z = impedance.parallel([0, 100])
        assert math.isfinite(z.real) and math.isfinite(z.imag)

    def test_wire_resistance_temperature(self):
        r20 = impedance.wire_resistance(1.0, 1e-6, "copper", 20.0)
        r30 = impedance.wire_resistance(1.0, 1e-6, "copper", 30.0)
        assert r20 == pytest.approx(0.0168)
        assert r30 == pytest.approx(0.0168 * (1 + 0.00393 * 10))

    def test_solenoid_inductance(self):
        props = CoilProps(turns=500, radius=0.02, length=0.1)
        expected = MU_0 * 0.999994 * 500**2 * math.pi * 0.02**2 / 0.1
        assert impedance.coil_inductance("solenoid", props) == pytest.approx(expected)

    def test_explicit_inductance_wins(self):
        props = CoilProps(turns=10, radius=0.01, inductance=2e-3)
        assert impedance.coil_inductance("coil", props) == 2e-3

    def test_toroid_inductance(self):
        props = CoilProps(turns=200, inner_radius=0.03, outer_radius=0.05)
        expected = MU_0 * 0.999994 * 200**2 * 0.02 * math.log(0.05 / 0.03) / (2 * math.pi)
        assert impedance.coil_inductance("toroid", props) == pytest.approx(expected)


class TestMetrics:
    def test_power_and_rise(self):
        assert metrics.power_dissipation(2.0, 10.0) == 40.0
        assert metrics.temperature_rise(2.0) == 125.0

    def test_zero_denominators(self):
        assert metrics.efficiency(5.0, 0.0) == 0.0
        assert metrics.voltage_regulation(12.0, 0.0) == 0.0
        assert metrics.resonant_frequency(0.0, 1e-6) == 0.0

    def test_resonance(self):
        f = metrics.resonant_frequency(1e-3, 1e-6)
        assert f == pytest.approx(1 / (2 * math.pi * math.sqrt(1e-9)))
        assert metrics.rc_time_constant(1000, 1e-6) == pytest.approx(1e-3)
        assert metrics.rl_time_constant(10, 1e-3) == pytest.approx(1e-4)


class TestSolver:
    def test_single_resistor(self, resistor_project):
        graph, solution, currents = _solve(resistor_project)
        assert solution.converged
        v_free = _port_voltage(graph, solution, resistor_project, "R1", 0)
        assert v_free == pytest.approx(12.0)
        assert abs(currents["R1"]) == pytest.approx(12.0 / 100.0)

    def test_single_resistor_other_terminal_grounded(self):
        project = CircuitProject()
        v1 = project.add_component("dcSource", (0, 0), component_id="V1")
        r1 = project.add_component("resistor", (100, 0), component_id="R1")
        gnd = project.add_component("ground", (0, 100), component_id="GND")
        project.update_component("V1", {"voltage": 12})
        project.update_component("R1", {"resistance": 100})
        project.add_wire("V1", v1.ports[0].id, "R1", r1.ports[0].id)
        project.add_wire("R1", r1.ports[1].id, "V1", v1.ports[1].id)
        project.add_wire("V1", v1.ports[0].id, "GND", gnd.ports[0].id)

        graph, solution, currents = _solve(project)
        assert _port_voltage(graph, solution, project, "R1", 0) == 0.0
        assert _port_voltage(graph, solution, project, "R1", 1) == pytest.approx(12.0)
        assert abs(currents["R1"]) == pytest.approx(0.12)

    def test_divider_ratio(self, divider_project):
        graph, solution, currents = _solve(divider_project)
        v_mid = _port_voltage(graph, solution, divider_project, "R1", 1)
        assert v_mid == pytest.approx(10.0 * 3000 / (1000 + 3000), abs=1e-6)

    def test_kcl_and_kvl(self, divider_project):
        graph, solution, currents = _solve(divider_project)
        mid = graph.node_of(divider_project.get_component("R1").ports[1].id)
        top = graph.node_of(divider_project.get_component("R1").ports[0].id)
        assert solver.verify_kcl(mid, graph.branches, currents) == pytest.approx(0.0, abs=1e-9)
        loop = [top, mid, graph.ground_node_id, top]
        assert solver.verify_kvl(loop, solution.voltages) == pytest.approx(0.0, abs=1e-12)

    def test_wired_ports_share_node(self, resistor_project):
        graph = solver.build_graph(resistor_project)
        gnd_port = resistor_project.get_component("GND").ports[0].id
        v1_neg = resistor_project.get_component("V1").ports[1].id
        assert graph.node_of(v1_neg) == graph.node_of(gnd_port) == graph.ground_node_id
        assert len(graph.nodes) == 2

    def test_source_branch_current_placeholder(self, resistor_project):
        graph, solution, currents = _solve(resistor_project)
        assert currents["V1"] == 0.0

    def test_stacked_sources(self):
        project = CircuitProject()
        v1 = project.add_component("dcSource", (0, 0), component_id="V1")
        v2 = project.add_component("dcSource", (0, 100), component_id="V2")
        r1 = project.add_component("resistor", (100, 0), component_id="R1")
        gnd = project.add_component("ground", (0, 200), component_id="GND")
        project.update_component("V1", {"voltage": 5})
        project.update_component("V2", {"voltage": 3})
        project.add_wire("V1", v1.ports[1].id, "GND", gnd.ports[0].id)
        project.add_wire("V1", v1.ports[0].id, "V2", v2.ports[1].id)
        project.add_wire("V2", v2.ports[0].id, "R1", r1.ports[0].id)
        project.add_wire("R1", r1.ports[1].id, "GND", gnd.ports[0].id)

        graph, solution, currents = _solve(project)
        assert _port_voltage(graph, solution, project, "R1", 0) == pytest.approx(8.0)

    def test_unconverged_is_reported(self, divider_project):
        graph = solver.build_graph(divider_project)
        solution = solver.nodal_analysis(
            graph.nodes, graph.branches, graph.ground_node_id, max_iterations=1
        )
        assert solution.converged is False
        assert solution.iterations == 1

    def test_failed_component_is_open(self, divider_project):
        divider_project.get_component("R2").is_failed = True
        graph = solver.build_graph(divider_project)
        assert "R2" not in [b.id for b in graph.branches]

    def test_open_switch_has_no_branch(self):
        project = CircuitProject()
        sw = project.add_component("switch", (0, 0), component_id="S1")
        assert solver.build_graph(project).branches == []
        project.update_component(sw.id, {"isOpen": False})
        branches = solver.build_graph(project).branches
        assert branches[0].type == BranchType.WIRE

    def test_pulse_generator_uses_duty_cycle(self):
        project = CircuitProject()
        project.add_component("pulseGenerator", (0, 0), component_id="P1")
        branch = solver.build_graph(project).branches[0]
        assert branch.type == BranchType.SOURCE
        assert branch.value == pytest.approx(5.0 * 0.5)

    def test_circuit_complete(self, divider_project):
        graph = solver.build_graph(divider_project)
        assert solver.is_circuit_complete(graph.nodes, graph.branches)

    def test_island_is_incomplete(self, divider_project):
        divider_project.add_component("resistor", (500, 500))
        graph = solver.build_graph(divider_project)
        assert not solver.is_circuit_complete(graph.nodes, graph.branches)

    def test_no_source_is_incomplete(self):
        project = CircuitProject()
        project.add_component("resistor", (0, 0))
        graph = solver.build_graph(project)
        assert not solver.is_circuit_complete(graph.nodes, graph.branches)

    def test_total_power(self, divider_project):
        graph, solution, currents = _solve(divider_project)
        assert solver.total_power(graph.branches, currents) == pytest.approx(10.0**2 / 4000)

    def test_ac_stub(self, divider_project):
        graph = solver.build_graph(divider_project)
        ac = solver.ac_nodal_analysis(graph.nodes, graph.branches, graph.ground_node_id, 50.0)
        assert ac.frequency == 50.0
        assert ac.voltages == {} and ac.currents == {}


class TestThermal:
    @pytest.fixture
    def model(self):
        return ThermalModel()

    @pytest.fixture
    def props(self):
        return ThermalProperties(thermal_resistance=50.0, thermal_mass=0.5, max_temperature=200.0)

    @pytest.mark.parametrize(
        "temperature, level",
        [
            (190.0, WarningLevel.CRITICAL),
            (180.0, WarningLevel.HIGH),
            (179.98, WarningLevel.MEDIUM),
            (160.0, WarningLevel.MEDIUM),
            (150.0, WarningLevel.LOW),
            (90.0, WarningLevel.NONE),
        ],
    )
    def test_warning_thresholds(self, model, props, temperature, level):
        assert model.classify_warning(temperature, props) == level

    def test_euler_step(self, model, props):
        assert model.update_temperature(25.0, 10.0, props, 0.1) == pytest.approx(27.0)

    def test_dissipation(self, model, props):
        assert model.heat_dissipation(75.0, props) == pytest.approx(1.0)
        assert model.heat_generation(2.0, 5.0) == 20.0

    def test_category_defaults(self, model):
        props = model.default_properties("dcSource", "source", None, 25.0)
        assert (props.thermal_resistance, props.thermal_mass) == (5.0, 20.0)
        assert props.max_temperature == 200.0
        iron = model.default_properties("coil", "magnetic", "iron")
        assert iron.max_temperature == 300.0

    def test_thermal_state(self, model, props):
        state = model.thermal_state(201.0, 0.0, props)
        assert state.is_overheating and state.is_failed
        assert state.margin == pytest.approx(-1.0)

    def test_electrical_failure(self, model):
        comp = create_component("resistor", (0, 0))
        comp.current_flow = -1500.0
        failed, kind = model.check_failure(comp, model.properties_for(comp))
        assert failed and kind == FailureType.ELECTRICAL

    def test_magnetic_failure(self, model):
        comp = create_component("coil", (0, 0))
        comp.properties.update({"turns": 1_000_000, "radius": 0.01})
        comp.current_flow = 10.0
        assert model.center_field(comp) == pytest.approx(MU_0 * 1e6 * 10 / 0.02)
        failed, kind = model.check_failure(comp, model.properties_for(comp))
        assert failed and kind == FailureType.MAGNETIC


class TestValidation:
    def test_empty_circuit(self):
        result = validate_circuit(CircuitProject())
        assert not result.is_valid
        assert "Circuit requires a power source" in result.errors
        assert "Circuit requires a ground connection" in result.errors

    def test_valid_divider(self, divider_project):
        result = validate_circuit(divider_project)
        assert result.is_valid
        assert result.warnings == []

    def test_unconnected_warning(self, divider_project):
        comp = divider_project.add_component("inductor", (400, 0))
        result = validate_circuit(divider_project)
        assert result.is_valid
        assert result.warnings == [f"{comp.name} is not connected to the circuit"]

    def test_component_rules(self):
        comp = create_component("resistor", (0, 0))
        comp.name = "R7"
        comp.properties.update({"resistance": -5})
        comp.temperature = 600.0
        errors = validate_component(comp)
        assert "R7: Resistance must be positive" in errors
        assert "R7: Component overheating" in errors

    def test_source_voltage_limit(self):
        comp = create_component("acSource", (0, 0))
        comp.properties.update({"voltage": -20000})
        assert any("Voltage exceeds" in e for e in validate_component(comp))


class TestSimulator:
    def test_field_grid_rejects_zero_resolution(self):
        sim = CircuitSimulator()
        source = FieldSource(lat=45.0, lon=7.0, alt=0.0, radius=10.0, turns=1, current=1.0)
        with pytest.raises(ValueError):
            sim.field_grid([source], (44.99, 45.01), (6.99, 7.01), 0.0, resolution=0)

    def test_field_grid_default_resolution(self):
        sim = CircuitSimulator()
        sim.update_settings({"fieldResolution": 2})
        source = FieldSource(lat=45.0, lon=7.0, alt=0.0, radius=10.0, turns=1, current=1.0)
        samples = sim.field_grid([source], (44.99, 45.01), (6.99, 7.01), 0.0)
        assert len(samples) == 9

    def test_add_unknown_component(self):
        sim = CircuitSimulator()
        assert sim.add_component("fluxCapacitor", (0, 0)) is None

    def test_selection_is_exclusive(self, divider_project):
        sim = CircuitSimulator(divider_project)
        sim.select_component("R1")
        sim.select_wire(divider_project.wires[0].id)
        assert sim.selected_component_id is None
        sim.select_component("R2")
        assert sim.selected_wire_id is None
        assert sim.selected_component_id == "R2"

    def test_start_requires_valid_circuit(self):
        sim = CircuitSimulator()
        sim.add_component("resistor", (0, 0))
        assert sim.start_simulation() is False
        assert sim.state.is_running is False
        assert "Circuit requires a ground connection" in sim.state.errors

    def test_step_is_noop_when_stopped(self, divider_project):
        sim = CircuitSimulator(divider_project)
        sim.step_simulation(0.1)
        assert sim.state.time == 0.0
        assert divider_project.get_component("R1").current_flow == 0.0

    def test_step_updates_components(self, divider_project):
        sim = CircuitSimulator(divider_project)
        assert sim.start_simulation()
        sim.step_simulation()
        r1 = divider_project.get_component("R1")
        assert abs(r1.current_flow) == pytest.approx(10.0 / 4000)
        assert abs(r1.voltage_drop) == pytest.approx(2.5)
        assert r1.power_dissipation == pytest.approx((10.0 / 4000) ** 2 * 1000)
        assert sim.state.time == pytest.approx(divider_project.settings.time_step)
        assert sim.state.converged is True
        assert sim.state.is_circuit_complete

    def test_wire_currents(self, divider_project):
        sim = CircuitSimulator(divider_project)
        sim.start_simulation()
        sim.step_simulation(1e-3)
        assert all(abs(w.current) == pytest.approx(2.5e-3) for w in divider_project.wires[:3])

    def test_failure_is_sticky(self, overheat_project):
        sim = CircuitSimulator(overheat_project)
        assert sim.start_simulation()
        sim.step_simulation()
        r1 = overheat_project.get_component("R1")
        assert r1.is_failed
        assert r1.failure_type == FailureType.THERMAL

        sim.update_component("V1", {"voltage": 0})
        for _ in range(5):
            sim.step_simulation()
        assert r1.is_failed
        assert r1.current_flow == 0.0

        sim.reset_simulation()
        assert not r1.is_failed
        assert r1.failure_type == FailureType.NONE
        assert r1.temperature == overheat_project.settings.ambient_temperature
        assert sim.state.time == 0.0

    def test_failures_disabled(self, overheat_project):
        sim = CircuitSimulator(overheat_project)
        sim.update_settings({"enableFailures": False})
        sim.start_simulation()
        sim.step_simulation()
        r1 = overheat_project.get_component("R1")
        assert r1.temperature > 200.0
        assert not r1.is_failed
        assert r1.warning_level == WarningLevel.CRITICAL

    def test_drive_frequency(self, divider_project):
        sim = CircuitSimulator(divider_project)
        assert sim.drive_frequency() == 0.0
        sim.add_component("acSource", (0, 300))
        assert sim.drive_frequency() == divider_project.settings.frequency

    def test_view_mode(self):
        sim = CircuitSimulator()
        assert sim.set_view_mode("field3d")
        assert not sim.set_view_mode("hologram")
        assert sim.view_mode == "field3d"

    def test_new_project(self, divider_project):
        sim = CircuitSimulator(divider_project)
        sim.select_component("R1")
        sim.new_project("Scratch")
        assert sim.project.name == "Scratch"
        assert sim.project.components == []
        assert sim.selected_component_id is None

    def test_save_and_load(self, divider_project, tmp_path):
        sim = CircuitSimulator(divider_project)
        sim.start_simulation()
        sim.step_simulation()
        sim.select_component("R2")
        path = tmp_path / "state.json"
        sim.save(path)

        loaded = CircuitSimulator.load(path)
        assert [c.id for c in loaded.project.components] == ["V1", "R1", "R2", "GND"]
        assert len(loaded.project.wires) == 4
        assert loaded.selected_component_id == "R2"
        r1 = loaded.project.get_component("R1")
        assert r1.current_flow == pytest.approx(divider_project.get_component("R1").current_flow)

    def test_snapshot_shape(self, divider_project):
        snap = CircuitSimulator(divider_project).snapshot()
        assert set(snap) == {
            "project", "simulation", "selectedComponentId", "selectedWireId", "viewMode",
        }
        assert snap["project"]["settings"]["timeStep"] == pytest.approx(1e-3)


class TestSettings:
    def test_from_yaml(self):
        settings = SimulationSettings.from_yaml(EXAMPLES / "settings.yaml")
        assert settings.time_step == pytest.approx(1e-4)
        assert settings.field_resolution == 20
        assert isinstance(settings.field_resolution, int)

    def test_update_ignores_unknown(self):
        settings = SimulationSettings()
        settings.update({"bufferScale": "2", "colour": "red"})
        assert settings.buffer_scale == 2.0
        assert not hasattr(settings, "colour")

    def test_catalog_is_complete(self):
        assert len(DEFAULT_CATALOG) == 20
        assert set(DEFAULT_CATALOG.by_category("source")) == {
            "dcSource", "acSource", "pulseGenerator",
        }
