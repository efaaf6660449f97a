"""Load circuits, snapshots, field sources and catalogs from YAML files.

Circuit files name components by id and wire them by ``<component>.<port>``:

    name: divider
    settings: {ambientTemperature: 25}
    components:
      - {id: V1, type: dcSource, position: [0, 0], properties: {voltage: 10}}
      - {id: R1, type: resistor, properties: {resistance: 100}}
      - {id: GND, type: ground}
    wires:
      - {from: V1.0, to: R1.0}

JSON snapshots written by ``CircuitSimulator.save`` are valid YAML and load
through the same path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..analysis.magnetics import FieldSource
from ..core.catalog import MAX_PORTS, ComponentCatalog, ComponentDefinition, DEFAULT_CATALOG
from ..core.config import SimulationSettings
from ..core.errors import CircuitLoadError
from ..core.models import CircuitProject, FailureType, WarningLevel, create_component


def _read(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except OSError as exc:
        raise CircuitLoadError(f"Cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CircuitLoadError(f"Malformed YAML in {path}: {exc}") from exc


def _mapping(data: Any, path: Path) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise CircuitLoadError(f"{path}: expected a mapping at the top level")
    return data


def load_project(path: Path, catalog: ComponentCatalog = DEFAULT_CATALOG) -> CircuitProject:
    """Load a CircuitProject from a YAML circuit file or a JSON snapshot."""
    data = _mapping(_read(path), path)
    return project_from_dict(data.get("project", data), catalog, default_name=path.stem)


def load_snapshot(
    path: Path, catalog: ComponentCatalog = DEFAULT_CATALOG
) -> tuple[CircuitProject, dict[str, Any]]:
    """Project plus the raw top-level snapshot record (selection, view mode)."""
    data = _mapping(_read(path), path)
    project = project_from_dict(data.get("project", data), catalog, default_name=path.stem)
    return project, data


def project_from_dict(
    data: dict[str, Any],
    catalog: ComponentCatalog = DEFAULT_CATALOG,
    default_name: str = "New Circuit",
) -> CircuitProject:
    project = CircuitProject(
        name=str(data.get("name", default_name)),
        description=str(data.get("description", "")),
    )
    if "id" in data:
        project.id = str(data["id"])
    try:
        project.settings = SimulationSettings.from_dict(data.get("settings") or {})
    except (ValueError, TypeError, AttributeError) as exc:
        raise CircuitLoadError(f"Invalid settings: {exc}") from exc

    for cdata in data.get("components", []) or []:
        try:
            _parse_component(project, cdata, catalog)
        except (ValueError, TypeError, AttributeError) as exc:
            raise CircuitLoadError(f"Invalid component {cdata!r}: {exc}") from exc

    for wdata in data.get("wires", []) or []:
        try:
            _parse_wire(project, wdata)
        except (ValueError, TypeError, AttributeError) as exc:
            raise CircuitLoadError(f"Invalid wire {wdata!r}: {exc}") from exc

    return project


def _position(value: Any) -> tuple[float, float]:
    if value is None:
        return (0.0, 0.0)
    if isinstance(value, dict):
        return (float(value.get("x", 0)), float(value.get("y", 0)))
    return (float(value[0]), float(value[1]))


def _parse_component(project: CircuitProject, cdata: dict, catalog: ComponentCatalog) -> None:
    type_ = cdata.get("type")
    comp = project.add_component(
        type_, _position(cdata.get("position")), catalog, cdata.get("id")
    )
    if comp is None:
        raise CircuitLoadError(f"Unknown component type '{type_}'")

    if "name" in cdata:
        comp.name = str(cdata["name"])
    comp.rotation = float(cdata.get("rotation", 0.0)) % 360.0
    comp.properties.update(cdata.get("properties") or {})

    # runtime state present in snapshots
    if "temperature" in cdata:
        comp.temperature = float(cdata["temperature"])
    comp.current_flow = float(cdata.get("currentFlow", 0.0))
    comp.voltage_drop = float(cdata.get("voltageDrop", 0.0))
    comp.power_dissipation = float(cdata.get("powerDissipation", 0.0))
    comp.is_failed = bool(cdata.get("isFailed", False))
    comp.failure_type = FailureType(cdata.get("failureType", "none"))
    comp.warning_level = WarningLevel(cdata.get("warningLevel", "none"))


def _endpoint(project: CircuitProject, ref: str) -> tuple[str, str]:
    """Resolve ``"R1.0"`` to (component id, port id)."""
    cid, _, index = str(ref).rpartition(".")
    comp = project.get_component(cid)
    if comp is None:
        raise CircuitLoadError(f"Wire endpoint '{ref}' names unknown component '{cid}'")
    try:
        port = comp.ports[int(index)]
    except (ValueError, IndexError):
        raise CircuitLoadError(f"Wire endpoint '{ref}' names unknown port") from None
    return comp.id, port.id


def _parse_wire(project: CircuitProject, wdata: dict) -> None:
    if "from" in wdata:
        start_c, start_p = _endpoint(project, wdata["from"])
        end_c, end_p = _endpoint(project, wdata["to"])
    else:
        try:
            start_c, start_p = wdata["startComponentId"], wdata["startPortId"]
            end_c, end_p = wdata["endComponentId"], wdata["endPortId"]
        except KeyError as exc:
            raise CircuitLoadError(f"Wire is missing {exc}") from None

    wire = project.add_wire(
        start_c, start_p, end_c, end_p,
        points=[_position(p) for p in wdata.get("points", [])],
        material=wdata.get("material", "copper"),
    )
    if "id" in wdata:
        wire.id = str(wdata["id"])
    wire.cross_section = float(wdata.get("crossSection", wire.cross_section))
    wire.length = float(wdata.get("length", wire.length))
    wire.current = float(wdata.get("current", 0.0))
    wire.temperature = float(wdata.get("temperature", wire.temperature))


def load_sources(path: Path) -> list[FieldSource]:
    """Load loop sources from a YAML file with a top-level ``sources`` list."""
    data = _mapping(_read(path), path)
    try:
        return [FieldSource.from_dict(s) for s in data.get("sources", [])]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise CircuitLoadError(f"{path}: invalid field source ({exc})") from exc


def load_catalog(path: Path) -> ComponentCatalog:
    """Load a component catalog; entries are keyed by component type."""
    data = _mapping(_read(path), path)
    definitions = {}
    for type_, ddata in (data.get("components") or {}).items():
        try:
            definitions[type_] = ComponentDefinition(
                type=type_,
                category=ddata["category"],
                label=ddata.get("label", type_),
                port_count=int(ddata.get("ports", 2)),
                width=float(ddata.get("width", 60)),
                height=float(ddata.get("height", 40)),
                default_props=dict(ddata.get("defaultProps") or {}),
                icon=ddata.get("icon", ""),
                color=ddata.get("color", ""),
            )
        except KeyError as exc:
            raise CircuitLoadError(f"{path}: component '{type_}' is missing {exc}") from None
        except (ValueError, TypeError, AttributeError) as exc:
            raise CircuitLoadError(f"{path}: component '{type_}' is invalid ({exc})") from exc
        if not 1 <= definitions[type_].port_count <= MAX_PORTS:
            raise CircuitLoadError(
                f"{path}: component '{type_}' needs 1-{MAX_PORTS} ports, "
                f"got {definitions[type_].port_count}"
            )
    return ComponentCatalog(definitions)
