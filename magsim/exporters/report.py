"""Export simulation snapshots as JSON and HTML reports."""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Any

from ..core.config import serialize


class ReportExporter:
    """Write ``snapshot.json`` and ``report.html`` for one simulation run."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def export(
        self,
        snapshot: dict[str, Any],
        field_data: dict[str, Any] | None = None,
    ) -> list[Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return [
            self._export_json(snapshot, field_data),
            self._export_html(snapshot, field_data),
        ]

    def _export_json(self, snapshot: dict[str, Any], field_data: dict[str, Any] | None) -> Path:
        out = dict(snapshot)
        if field_data is not None:
            out["field"] = field_data
        path = self.output_dir / "snapshot.json"
        with open(path, "w") as f:
            json.dump(serialize(out), f, indent=2)
        return path

    def _export_html(self, snapshot: dict[str, Any], field_data: dict[str, Any] | None) -> Path:
        project = snapshot.get("project", {})
        sim = snapshot.get("simulation", {})
        name = html.escape(str(project.get("name", "circuit")))

        html_parts: list[str] = []
        html_parts.append("<!DOCTYPE html>")
        html_parts.append("<html><head>")
        html_parts.append("<meta charset='utf-8'>")
        html_parts.append(f"<title>Circuit Simulation Report - {name}</title>")
        html_parts.append(self._css())
        html_parts.append("</head><body>")
        html_parts.append(f"<h1>Circuit Simulation Report: {name}</h1>")

        status = "pass" if not sim.get("errors") else "fail"
        html_parts.append(f"<div class='section {status}'>")
        html_parts.append("<h2>Simulation State</h2>")
        html_parts.append(f"<p>Elapsed time: {sim.get('time', 0):.6g} s ({sim.get('steps', 0)} steps)</p>")
        html_parts.append(f"<p>Circuit complete: {sim.get('isCircuitComplete', False)}</p>")
        converged = sim.get("converged")
        if converged is not None:
            html_parts.append(
                f"<p>Last solve: {'converged' if converged else 'NOT converged'} "
                f"after {sim.get('iterations', 0)} iterations</p>"
            )
        for w in sim.get("warnings", []):
            html_parts.append(f"<p class='warning'>Warning: {html.escape(w)}</p>")
        for e in sim.get("errors", []):
            html_parts.append(f"<p class='error'>Error: {html.escape(e)}</p>")
        html_parts.append("</div>")

        html_parts.append("<div class='section'>")
        html_parts.append("<h2>Components</h2>")
        html_parts.append(self._component_table(project.get("components", [])))
        html_parts.append("</div>")

        wires = project.get("wires", [])
        if wires:
            html_parts.append("<div class='section'>")
            html_parts.append("<h2>Wires</h2>")
            html_parts.append(
                "<table><tr><th>Wire</th><th>From</th><th>To</th>"
                "<th>Current (A)</th><th>Temp (&deg;C)</th></tr>"
            )
            for w in wires:
                html_parts.append(
                    f"<tr><td>{w['id']}</td><td>{w['startComponentId']}</td>"
                    f"<td>{w['endComponentId']}</td><td>{w['current']:.6g}</td>"
                    f"<td>{w['temperature']:.2f}</td></tr>"
                )
            html_parts.append("</table>")
            html_parts.append("</div>")

        if field_data:
            html_parts.append(self._field_section(field_data))

        html_parts.append("</body></html>")

        path = self.output_dir / "report.html"
        path.write_text("\n".join(html_parts))
        return path

    @staticmethod
    def _component_table(components: list[dict]) -> str:
        parts = [
            "<table><tr><th>Name</th><th>Type</th><th>Current (A)</th>"
            "<th>Voltage drop (V)</th><th>Power (W)</th><th>Temp (&deg;C)</th>"
            "<th>Warning</th><th>Failure</th></tr>"
        ]
        for c in components:
            failure = c["failureType"] if c["isFailed"] else ""
            parts.append(
                f"<tr class='warn-{c['warningLevel']}'>"
                f"<td>{html.escape(c['name'])}</td><td>{c['type']}</td>"
                f"<td>{c['currentFlow']:.6g}</td><td>{c['voltageDrop']:.6g}</td>"
                f"<td>{c['powerDissipation']:.6g}</td><td>{c['temperature']:.2f}</td>"
                f"<td>{c['warningLevel']}</td><td>{failure}</td></tr>"
            )
        parts.append("</table>")
        return "\n".join(parts)

    @staticmethod
    def _field_section(field_data: dict[str, Any]) -> str:
        grid = field_data.get("field_grid", {})
        parts = ["<div class='section'>", "<h2>Magnetic Field</h2>"]
        for src in field_data.get("sources", []):
            parts.append(
                f"<p>Loop {html.escape(src.get('name') or '')} at "
                f"({src['lat']:.5f}, {src['lon']:.5f}), r = {src['radius']} m, "
                f"N = {src['turns']}, I = {src['current']} A: centre field "
                f"{src.get('center_field_tesla', 0) * 1e6:.4g} uT</p>"
            )
        if grid:
            parts.append(
                f"<p>Grid {grid['resolution'] + 1} x {grid['resolution'] + 1} at "
                f"{grid['altitude_m']} m, buffer scale {grid['buffer_scale']}</p>"
            )
            parts.append(
                f"<p>Field range: {grid['min_b_tesla'] * 1e6:.4g} - "
                f"{grid['max_b_tesla'] * 1e6:.4g} uT</p>"
            )
            parts.append("<p><em>See field_magnitude.png for visualization</em></p>")
        parts.append("</div>")
        return "\n".join(parts)

    @staticmethod
    def _css() -> str:
        return """
<style>
  body { font-family: 'Segoe UI', Tahoma, sans-serif; max-width: 1000px; margin: 40px auto; padding: 0 20px; background: #f5f5f5; }
  h1 { color: #2c3e50; border-bottom: 3px solid #3498db; padding-bottom: 10px; }
  h2 { color: #34495e; }
  .section { background: white; padding: 20px; margin: 20px 0; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
  .section.fail { border-left: 4px solid #e74c3c; }
  .section.pass { border-left: 4px solid #2ecc71; }
  table { border-collapse: collapse; width: 100%; margin: 10px 0; }
  th, td { border: 1px solid #ddd; padding: 8px 12px; text-align: left; }
  th { background: #3498db; color: white; }
  tr:nth-child(even) { background: #f2f2f2; }
  tr.warn-high td, tr.warn-critical td { color: #c0392b; }
  .warning { color: #f39c12; }
  .error { color: #e74c3c; font-weight: bold; }
</style>"""
