"""Scenario configuration.

A scenario is described by a small JSON document::

    {
        "name": "Ring road",
        "road_network": "ring.xodr",
        "scale": 4.0
    }

``road_network`` is resolved relative to the JSON file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

SCENARIO_DIR = Path(__file__).resolve().parent / "scenarios"
DEFAULT_SCENARIO = SCENARIO_DIR / "ring.json"


@dataclass(frozen=True)
class Scenario:
    """Static configuration of one simulation run.

    - name: Human-readable scenario name.
    - config_path: Path of the OpenDRIVE road network.
    - scale: Rendering scale in pixels per metre (must be > 0).
    """

    name: str
    config_path: Path
    scale: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "config_path", Path(self.config_path))
        if isinstance(self.scale, bool) or not isinstance(self.scale, (int, float)):
            raise ValueError(f"scale must be a number, got {self.scale!r}.")
        if self.scale <= 0:
            raise ValueError("scale must be positive.")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "Scenario":
        """Build a scenario from parsed JSON, resolving paths against ``base_dir``."""
        try:
            road_network = data["road_network"]
        except KeyError:
            raise ValueError("Scenario is missing the 'road_network' entry.") from None

        config_path = Path(road_network)
        if base_dir is not None and not config_path.is_absolute():
            config_path = base_dir / config_path
        return cls(
            name=str(data.get("name", config_path.stem)),
            config_path=config_path,
            scale=data.get("scale", 1.0),
        )


def load_scenario(path: Union[str, "os.PathLike[str]"] = DEFAULT_SCENARIO) -> Scenario:
    """Load a scenario JSON file.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the file is not valid JSON or misses required entries.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Scenario file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Scenario file {path} must contain a JSON object.")
    return Scenario.from_dict(data, base_dir=path.parent)


__all__ = ["DEFAULT_SCENARIO", "SCENARIO_DIR", "Scenario", "load_scenario"]
