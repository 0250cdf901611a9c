"""
Configuration layer for the plankton simulator.

This module does NOT run simulations. It holds validated, deterministic
simulation configs and the named presets the CLI exposes.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple


class ConfigurationError(ValueError):
    """Raised for simulation parameters that cannot produce a valid run."""


@dataclass
class PhytoParams:
    turn_limit: float = math.pi / 3
    speed: float = 0.5
    reproduce_probability: float = 0.05
    crowding_radius: float = 1.0
    crowding_limit: int = 4


@dataclass
class ZooParams:
    turn_limit: float = math.pi / 6
    speed: float = 2.0
    metabolism: int = 1
    death_threshold: float = 0.2
    feeding_radius: float = 2.0
    eat_gain: int = 3
    reproduce_threshold: int = 10
    offspring_energy: int = 4
    initial_energy: Tuple[int, int] = (4, 9)


@dataclass
class SimulationConfig:
    population_phyto: int = 200
    population_zoo: int = 20
    width: float = 70.0
    height: float = 70.0
    steps: int = 200
    seed: Optional[int] = None
    phyto_params: PhytoParams = field(default_factory=PhytoParams)
    zoo_params: ZooParams = field(default_factory=ZooParams)
    cell_size: Optional[float] = None

    @property
    def extent(self) -> Tuple[float, float]:
        return (self.width, self.height)

    def largest_radius(self) -> float:
        return max(self.phyto_params.crowding_radius, self.zoo_params.feeding_radius)


def _validate_phyto(params: PhytoParams) -> None:
    if params.turn_limit < 0:
        raise ConfigurationError("phyto turn_limit must be >= 0")
    if params.speed < 0:
        raise ConfigurationError("phyto speed must be >= 0")
    if not 0.0 <= params.reproduce_probability <= 1.0:
        raise ConfigurationError("phyto reproduce_probability must be within [0, 1]")
    if params.crowding_radius <= 0:
        raise ConfigurationError("phyto crowding_radius must be positive")
    if params.crowding_limit <= 0:
        raise ConfigurationError("phyto crowding_limit must be positive")


def _validate_zoo(params: ZooParams) -> None:
    if params.turn_limit < 0:
        raise ConfigurationError("zoo turn_limit must be >= 0")
    if params.speed < 0:
        raise ConfigurationError("zoo speed must be >= 0")
    if params.metabolism < 0:
        raise ConfigurationError("zoo metabolism must be >= 0")
    if params.feeding_radius <= 0:
        raise ConfigurationError("zoo feeding_radius must be positive")
    if params.offspring_energy <= 0:
        raise ConfigurationError("zoo offspring_energy must be positive")
    if params.reproduce_threshold < params.offspring_energy:
        raise ConfigurationError("zoo reproduce_threshold must be >= offspring_energy")
    low, high = params.initial_energy
    if low > high:
        raise ConfigurationError("zoo initial_energy range is empty")


def validate_config(config: SimulationConfig) -> None:
    if config.population_phyto < 0 or config.population_zoo < 0:
        raise ConfigurationError("population counts must be >= 0")
    if config.width <= 0 or config.height <= 0:
        raise ConfigurationError("width and height must be positive")
    if config.steps <= 0:
        raise ConfigurationError("steps must be positive")
    if config.cell_size is not None and config.cell_size <= 0:
        raise ConfigurationError("cell_size must be positive")
    _validate_phyto(config.phyto_params)
    _validate_zoo(config.zoo_params)


def expand_seeds(config: SimulationConfig, seeds: List[int]) -> List[SimulationConfig]:
    return [replace(config, seed=seed) for seed in seeds]


def get_preset(name: str) -> SimulationConfig:
    if name not in PRESET_SCENARIOS:
        raise ConfigurationError(f"Unknown scenario: {name}")
    return copy.deepcopy(PRESET_SCENARIOS[name])


def summarize_config(config: SimulationConfig) -> Dict:
    return {
        "population_phyto": config.population_phyto,
        "population_zoo": config.population_zoo,
        "extent": config.extent,
        "steps": config.steps,
        "seed": config.seed,
        "phyto_params": vars(config.phyto_params),
        "zoo_params": vars(config.zoo_params),
    }


PRESET_SCENARIOS = {
    "baseline": SimulationConfig(seed=42),
    "phyto_bloom": SimulationConfig(
        population_phyto=400,
        population_zoo=10,
        phyto_params=PhytoParams(reproduce_probability=0.08),
        seed=7,
    ),
    "grazer_pressure": SimulationConfig(
        population_phyto=200,
        population_zoo=60,
        seed=11,
    ),
    "small_pond": SimulationConfig(
        population_phyto=60,
        population_zoo=6,
        width=25.0,
        height=25.0,
        steps=150,
        seed=3,
    ),
}
