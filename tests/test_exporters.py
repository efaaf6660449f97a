"""Smoke tests for report/plot export and the command-line interface."""

import json
from pathlib import Path

import pytest

from magsim.analysis.magnetics import MagneticsAnalyzer
from magsim.core.cli import main
from magsim.core.config import SimulationSettings
from magsim.core.simulator import CircuitSimulator
from magsim.exporters.field_plots import generate_field_plots
from magsim.exporters.report import ReportExporter
from magsim.parsers.yaml_loader import load_project, load_sources


EXAMPLES = Path(__file__).parent.parent / "examples"
DIVIDER = EXAMPLES / "divider" / "circuit.yaml"
LOOPS = EXAMPLES / "loops" / "sources.yaml"


@pytest.fixture
def field_data():
    result = MagneticsAnalyzer().run(
        load_sources(LOOPS), SimulationSettings(), (44.998, 45.002), (6.997, 7.003),
        altitude=10.0, resolution=4,
    )
    return result.data


class TestReportExporter:
    def test_export(self, tmp_path, field_data):
        sim = CircuitSimulator(load_project(DIVIDER))
        sim.start_simulation()
        sim.step_simulation()

        paths = ReportExporter(tmp_path).export(sim.snapshot(), field_data)
        assert [p.name for p in paths] == ["snapshot.json", "report.html"]

        data = json.loads((tmp_path / "snapshot.json").read_text())
        assert data["project"]["name"] == "divider"
        assert "field_grid" in data["field"]

        html = (tmp_path / "report.html").read_text()
        assert "Circuit Simulation Report: divider" in html
        assert "Magnetic Field" in html

    def test_export_without_field(self, tmp_path):
        sim = CircuitSimulator(load_project(DIVIDER))
        ReportExporter(tmp_path / "nested").export(sim.snapshot())
        assert (tmp_path / "nested" / "report.html").exists()


class TestFieldPlots:
    def test_generates_images(self, tmp_path, field_data):
        plots = generate_field_plots(field_data, tmp_path)
        assert len(plots) == 3
        assert all(p.exists() and p.suffix == ".png" for p in plots)

    def test_no_grid(self, tmp_path):
        assert generate_field_plots({}, tmp_path) == []


class TestCLI:
    def test_catalog(self, capsys):
        assert main(["catalog"]) == 0
        assert "dcSource" in capsys.readouterr().out

    def test_validate(self, capsys):
        assert main(["validate", str(DIVIDER)]) == 0
        assert "circuit is valid" in capsys.readouterr().out

    def test_validate_invalid(self, tmp_path):
        path = tmp_path / "lonely.yaml"
        path.write_text("components:\n  - {id: R1, type: resistor}\n")
        assert main(["validate", str(path)]) == 1

    def test_simulate(self, tmp_path):
        out = tmp_path / "sim"
        assert main(["simulate", str(DIVIDER), "--steps", "3", "-o", str(out)]) == 0
        data = json.loads((out / "snapshot.json").read_text())
        assert data["simulation"]["steps"] == 3

    def test_simulate_missing_file(self, tmp_path, capsys):
        assert main(["simulate", str(tmp_path / "nope.yaml")]) == 2
        assert "[ERROR]" in capsys.readouterr().err

    @pytest.mark.parametrize(
        "entry",
        [
            "{id: R1, type: resistor, properties: {resistance: abc}}",
            "{id: R1, type: resistor, failureType: melted}",
        ],
    )
    def test_validate_bad_values(self, tmp_path, capsys, entry):
        path = tmp_path / "bad.yaml"
        path.write_text(f"components:\n  - {entry}\n")
        assert main(["validate", str(path)]) == 2
        assert "[ERROR]" in capsys.readouterr().err

    def test_field(self, tmp_path):
        out = tmp_path / "field"
        code = main([
            "field", str(LOOPS),
            "--lat-range", "44.998", "45.002",
            "--lon-range", "6.997", "7.003",
            "--resolution", "3", "--plots", "-o", str(out),
        ])
        assert code == 0
        assert (out / "field.json").exists()
        assert (out / "field_magnitude.png").exists()

    def test_no_command(self):
        assert main([]) == 0
