"""DC nodal analysis of the circuit graph.

Per step the project is turned into a transient graph:

    build_graph -> pin ground and source nodes -> Gauss-Seidel relaxation
                -> branch currents

Ports joined by wires (and all ports of a junction) form one electrical node.
Components that conduct between two ports become branches. Ideal sources are
not solved for; they pin the voltage of the node on their far side, so the
current through a source branch is reported as 0.0.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from ..core.catalog import COIL_TYPES, SOURCE_TYPES
from ..core.constants import DEFAULT_LIMITS, SimulationLimits
from ..core.materials import MaterialTable
from ..core.models import BranchType, CircuitComponent, CircuitProject
from ..core.vector import magnitude
from . import impedance

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-6


@dataclass
class CircuitNode:
    id: str
    voltage: float = 0.0
    connections: list[str] = field(default_factory=list)  # branch ids


@dataclass
class CircuitBranch:
    id: str
    start_node: str
    end_node: str
    impedance: complex
    type: BranchType
    value: float  # resistance, capacitance, inductance or source voltage
    component_id: str | None = None
    current: float = 0.0


@dataclass
class CircuitGraph:
    nodes: list[CircuitNode]
    branches: list[CircuitBranch]
    ground_node_id: str | None
    port_nodes: dict[str, str]  # port id -> node id

    def node_of(self, port_id: str) -> str | None:
        return self.port_nodes.get(port_id)


@dataclass
class NodalSolution:
    voltages: dict[str, float]
    iterations: int
    converged: bool
    max_change: float = 0.0

    def to_dict(self) -> dict:
        return {
            "voltages": dict(self.voltages),
            "iterations": self.iterations,
            "converged": self.converged,
            "maxChange": self.max_change,
        }


@dataclass
class ACSolution:
    frequency: float
    voltages: dict[str, complex] = field(default_factory=dict)
    currents: dict[str, complex] = field(default_factory=dict)


# --- Graph construction ------------------------------------------------------------

class _Nets:
    """Union-find over port ids; the lowest-ranked port names the net."""

    def __init__(self) -> None:
        self._parent: dict[str, str] = {}
        self._rank: dict[str, int] = {}

    def add(self, port_id: str, rank: int) -> None:
        if port_id not in self._parent:
            self._parent[port_id] = port_id
            self._rank[port_id] = rank

    def find(self, port_id: str) -> str:
        root = port_id
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[port_id] != root:
            self._parent[port_id], port_id = root, self._parent[port_id]
        return root

    def union(self, a: str, b: str) -> None:
        if a not in self._parent or b not in self._parent:
            return
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        if self._rank[rb] < self._rank[ra]:
            ra, rb = rb, ra
        self._parent[rb] = ra

    def ports(self) -> list[str]:
        return list(self._parent)


def _component_branches(
    comp: CircuitComponent,
    frequency: float,
    materials: MaterialTable,
    limits: SimulationLimits,
) -> list[tuple[str, int, int, complex, BranchType, float]]:
    """(branch id, port a, port b, Z, type, value) for each conducting path."""
    props = comp.properties
    min_r = limits.min_resistance
    t = comp.type

    if t == "resistor":
        r = props.resistance if props.resistance is not None else 0.0
        return [(comp.id, 0, 1, impedance.resistor(r, min_r), BranchType.RESISTOR, r)]

    if t == "capacitor":
        c = props.capacitance or 0.0
        return [(comp.id, 0, 1, impedance.capacitor(c, frequency), BranchType.CAPACITOR, c)]

    if t == "inductor":
        l = props.inductance or 0.0
        z = impedance.resistor(0.0, min_r) + impedance.inductor(l, frequency)
        return [(comp.id, 0, 1, z, BranchType.INDUCTOR, l)]

    if t in COIL_TYPES:
        z = impedance.coil_impedance(t, props, frequency, comp.temperature, materials, min_r)
        l = impedance.coil_inductance(t, props, materials)
        return [(comp.id, 0, 1, z, BranchType.INDUCTOR, l)]

    if t == "transformer":
        # ideal windings, no coupling
        z = impedance.coil_impedance(t, props, frequency, comp.temperature, materials, min_r)
        l = impedance.coil_inductance(t, props, materials)
        return [
            (f"{comp.id}_primary", 0, 1, z, BranchType.INDUCTOR, l),
            (f"{comp.id}_secondary", 2, 3, z, BranchType.INDUCTOR, l),
        ]

    if t == "wire":
        r = impedance.wire_resistance(
            props.length if props.length is not None else 0.1,
            props.cross_section if props.cross_section is not None else 1e-6,
            props.material or "copper",
            comp.temperature,
            materials,
        )
        return [(comp.id, 0, 1, impedance.resistor(r, min_r), BranchType.WIRE, r)]

    if t == "switch":
        if props.is_open:
            return []
        return [(comp.id, 0, 1, impedance.resistor(min_r, min_r), BranchType.WIRE, min_r)]

    if t == "relay":
        if props.is_open:
            return []
        return [(comp.id, 2, 3, impedance.resistor(min_r, min_r), BranchType.WIRE, min_r)]

    if t == "currentSensor":
        return [(comp.id, 0, 1, impedance.resistor(min_r, min_r), BranchType.WIRE, min_r)]

    if t in SOURCE_TYPES:
        v = props.voltage or 0.0
        if t == "pulseGenerator":
            duty = props.duty_cycle if props.duty_cycle is not None else 1.0
            v *= duty
        return [(comp.id, 0, 1, complex(0.0, 0.0), BranchType.SOURCE, v)]

    return []


def build_graph(
    project: CircuitProject,
    frequency: float = 0.0,
    materials: MaterialTable | None = None,
    limits: SimulationLimits = DEFAULT_LIMITS,
) -> CircuitGraph:
    """Contract wired ports into nodes and turn components into branches."""
    materials = materials or MaterialTable()
    nets = _Nets()

    rank = 0
    for comp in project.components:
        for port in comp.ports:
            # ground ports name their net
            nets.add(port.id, -1 if comp.type == "ground" else rank)
            rank += 1

    for wire in project.wires:
        nets.union(wire.start_port_id, wire.end_port_id)
    for comp in project.components_of_type("junction"):
        ids = comp.port_ids()
        for other in ids[1:]:
            nets.union(ids[0], other)

    port_nodes = {pid: nets.find(pid) for pid in nets.ports()}
    nodes: dict[str, CircuitNode] = {}
    for pid in nets.ports():
        nid = port_nodes[pid]
        if nid not in nodes:
            nodes[nid] = CircuitNode(id=nid)

    branches: list[CircuitBranch] = []
    for comp in project.components:
        if comp.is_failed:
            continue
        for bid, a, b, z, btype, value in _component_branches(comp, frequency, materials, limits):
            if max(a, b) >= len(comp.ports):
                continue
            start = port_nodes[comp.ports[a].id]
            end = port_nodes[comp.ports[b].id]
            branch = CircuitBranch(
                id=bid, start_node=start, end_node=end,
                impedance=z, type=btype, value=value, component_id=comp.id,
            )
            branches.append(branch)
            nodes[start].connections.append(bid)
            if end != start:
                nodes[end].connections.append(bid)

    ground = None
    grounds = project.components_of_type("ground")
    if grounds and grounds[0].ports:
        ground = port_nodes[grounds[0].ports[0].id]
    elif nodes:
        ground = next(iter(nodes))

    return CircuitGraph(
        nodes=list(nodes.values()),
        branches=branches,
        ground_node_id=ground,
        port_nodes=port_nodes,
    )


# --- Solve -------------------------------------------------------------------------

def _pin_sources(
    branches: list[CircuitBranch], ground_node_id: str
) -> dict[str, float]:
    pinned = {ground_node_id: 0.0}
    sources = [b for b in branches if b.type == BranchType.SOURCE]
    changed = True
    while changed:
        changed = False
        for b in sources:
            if b.start_node in pinned and b.end_node not in pinned:
                pinned[b.end_node] = pinned[b.start_node] + b.value
                changed = True
            elif b.end_node in pinned and b.start_node not in pinned:
                pinned[b.start_node] = pinned[b.end_node] + b.value
                changed = True
    return pinned


def nodal_analysis(
    nodes: list[CircuitNode],
    branches: list[CircuitBranch],
    ground_node_id: str,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
    min_resistance: float = DEFAULT_LIMITS.min_resistance,
) -> NodalSolution:
    """Gauss-Seidel relaxation of node voltages.

    Ground is held at 0 V. A node reached from a pinned node through a source
    branch is held at the pinned voltage plus the source value, whichever way
    round the source is wired. Every other node is relaxed towards the
    conductance-weighted mean of its neighbours until the largest update in a
    pass is below ``tolerance`` or ``max_iterations`` passes have run. Hitting
    the cap is not an error; ``converged`` says which case applies.
    """
    voltages = _pin_sources(branches, ground_node_id)
    pinned = set(voltages)

    incident: dict[str, list[CircuitBranch]] = {n.id: [] for n in nodes}
    for b in branches:
        if b.type == BranchType.SOURCE or b.start_node == b.end_node:
            continue
        incident.setdefault(b.start_node, []).append(b)
        incident.setdefault(b.end_node, []).append(b)

    conductance = {
        b.id: 1.0 / max(magnitude(b.impedance), min_resistance)
        for b in branches
        if b.type != BranchType.SOURCE
    }

    free = [n.id for n in nodes if n.id not in pinned]
    iterations = 0
    max_change = 0.0
    converged = False

    while iterations < max_iterations:
        iterations += 1
        max_change = 0.0
        for nid in free:
            sum_g = 0.0
            sum_i = 0.0
            for b in incident.get(nid, ()):
                other = b.end_node if b.start_node == nid else b.start_node
                g = conductance[b.id]
                sum_g += g
                sum_i += g * voltages.get(other, 0.0)
            if sum_g <= 0:
                continue
            new = sum_i / sum_g
            max_change = max(max_change, abs(new - voltages.get(nid, 0.0)))
            voltages[nid] = new
        if max_change < tolerance:
            converged = True
            break

    if not converged:
        logger.debug(
            "Nodal analysis stopped after %d iterations (max change %.3e V)",
            iterations, max_change,
        )

    for n in nodes:
        n.voltage = voltages.get(n.id, 0.0)
    return NodalSolution(voltages, iterations, converged, max_change)


def calculate_branch_currents(
    branches: list[CircuitBranch],
    voltages: dict[str, float],
    min_resistance: float = DEFAULT_LIMITS.min_resistance,
) -> dict[str, float]:
    """Current start -> end through every branch; 0.0 for ideal sources."""
    currents: dict[str, float] = {}
    for b in branches:
        if b.type == BranchType.SOURCE:
            # not determined by nodal relaxation
            current = 0.0
        else:
            dv = voltages.get(b.start_node, 0.0) - voltages.get(b.end_node, 0.0)
            current = dv / max(magnitude(b.impedance), min_resistance)
        b.current = current
        currents[b.id] = current
    return currents


def total_power(branches: list[CircuitBranch], currents: dict[str, float]) -> float:
    total = 0.0
    for b in branches:
        if b.type == BranchType.SOURCE:
            continue
        i = currents.get(b.id, 0.0)
        total += i * i * b.impedance.real
    return total


def is_circuit_complete(nodes: list[CircuitNode], branches: list[CircuitBranch]) -> bool:
    """All connected nodes reachable from one another, with a source among them.

    Nodes with no branch at all (unused ports) are ignored.
    """
    if not nodes or not branches:
        return False

    source_nodes = set()
    for b in branches:
        if b.type == BranchType.SOURCE:
            source_nodes.update((b.start_node, b.end_node))
    if not source_nodes:
        return False

    adjacency: dict[str, set[str]] = {}
    for b in branches:
        adjacency.setdefault(b.start_node, set()).add(b.end_node)
        adjacency.setdefault(b.end_node, set()).add(b.start_node)

    start = next(iter(source_nodes))
    visited = {start}
    queue = deque([start])
    while queue:
        nid = queue.popleft()
        for other in adjacency.get(nid, ()):
            if other not in visited:
                visited.add(other)
                queue.append(other)

    return visited == set(adjacency)


def verify_kcl(node_id: str, branches: Iterable[CircuitBranch], currents: dict[str, float]) -> float:
    """Net current into ``node_id``; near zero for a correct solve."""
    total = 0.0
    for b in branches:
        i = currents.get(b.id, 0.0)
        if b.start_node == node_id:
            total -= i
        if b.end_node == node_id:
            total += i
    return total


def verify_kvl(loop: list[str], voltages: dict[str, float]) -> float:
    """Sum of voltage drops along a closed node path (first id repeated last)."""
    total = 0.0
    for a, b in zip(loop, loop[1:]):
        total += voltages.get(a, 0.0) - voltages.get(b, 0.0)
    return total


def ac_nodal_analysis(
    nodes: list[CircuitNode],
    branches: list[CircuitBranch],
    ground_node_id: str,
    frequency: float,
) -> ACSolution:
    """Phasor analysis is not implemented; returns an empty solution."""
    logger.warning("AC nodal analysis is not implemented; returning an empty solution")
    return ACSolution(frequency=frequency)
