"""Simulation settings, simulation state and validation result types.

Separated from models.py and simulator.py to avoid circular imports with the
analysis modules.
"""

from __future__ import annotations

import dataclasses
import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np


@dataclass
class SimulationSettings:
    time_step: float = 1e-6  # seconds
    frequency: float = 60.0  # Hz, drive frequency for AC sources
    ambient_temperature: float = 25.0  # Celsius
    buffer_scale: float = 1.0
    enable_thermal: bool = True
    enable_failures: bool = True
    field_resolution: int = 50

    _KEYS = {
        "timeStep": "time_step",
        "ambientTemperature": "ambient_temperature",
        "bufferScale": "buffer_scale",
        "enableThermal": "enable_thermal",
        "enableFailures": "enable_failures",
        "fieldResolution": "field_resolution",
    }

    def update(self, values: dict[str, Any]) -> None:
        """Merge settings given in either camelCase or snake_case."""
        for key, value in values.items():
            attr = self._KEYS.get(key, key)
            if not hasattr(self, attr) or attr.startswith("_"):
                continue
            current = getattr(self, attr)
            if isinstance(current, bool):
                value = bool(value)
            elif isinstance(current, int):
                value = int(value)
            else:
                value = float(value)
            setattr(self, attr, value)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationSettings:
        settings = cls()
        settings.update(data)
        return settings

    @classmethod
    def from_yaml(cls, path: Path) -> SimulationSettings:
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("settings", data))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timeStep": self.time_step,
            "frequency": self.frequency,
            "ambientTemperature": self.ambient_temperature,
            "bufferScale": self.buffer_scale,
            "enableThermal": self.enable_thermal,
            "enableFailures": self.enable_failures,
            "fieldResolution": self.field_resolution,
        }


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class SimulationState:
    is_running: bool = False
    time: float = 0.0  # seconds
    is_circuit_complete: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    steps: int = 0
    converged: bool | None = None  # last nodal solve
    iterations: int = 0  # last nodal solve

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "time": self.time,
            "isCircuitComplete": self.is_circuit_complete,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "steps": self.steps,
            "converged": self.converged,
            "iterations": self.iterations,
        }


def serialize(obj: Any) -> Any:
    """Make numpy arrays, enums and dataclasses JSON serializable."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return serialize(obj.to_dict())
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return serialize(dataclasses.asdict(obj))
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [serialize(v) for v in obj]
    return obj


@dataclass
class AnalysisResult:
    success: bool
    analysis: str
    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_json(self, path: Path) -> None:
        out = {
            "success": self.success,
            "analysis": self.analysis,
            "data": serialize(self.data),
            "errors": self.errors,
            "warnings": self.warnings,
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(out, f, indent=2)
