"""
Phytoplankton / zooplankton ecosystem simulation using Mesa.

Agents move in a continuous periodic domain. Each step visits every agent
alive at step start once, in a fresh random order.

Run:
  python plankton_sim.py
"""

from __future__ import annotations

import argparse
import logging
import math
import random
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Set

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation
from matplotlib.lines import Line2D
import numpy as np
import pandas as pd
from mesa import Agent, Model
from mesa.datacollection import DataCollector

from analysis import build_explanations, compute_stability_score
from periodic_space import PeriodicSpace, Position
from recorders import CsvRecorder, FrameRecorder, RecorderGroup, plot_populations
from scenario import ConfigurationError, SimulationConfig, get_preset, validate_config

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi


class AgentRecord(NamedTuple):
    step: int
    agent_id: int
    species: str
    x: float
    y: float
    energy: Optional[int]


class PlanktonAgent(Agent):
    species_name = "base"

    def __init__(self, unique_id: int, model: Model, direction: float):
        super().__init__(model)
        self.unique_id = unique_id
        self.direction = direction

    def step(self) -> None:
        raise NotImplementedError

    def _turn(self, limit: float) -> None:
        self.direction += self.model.random.uniform(-limit, limit)

    def _move(self, speed: float) -> None:
        self.model.store.move(
            self, speed * math.cos(self.direction), speed * math.sin(self.direction)
        )

    def _die(self) -> None:
        self.model.store.remove(self.unique_id)


class Phyto(PlanktonAgent):
    species_name = "phyto"

    def step(self) -> None:
        params = self.model.phyto_params
        self._turn(params.turn_limit)
        self._move(params.speed)
        if self.model.random.random() < params.reproduce_probability:
            self.model.store.add(Phyto, self.pos)
        if self._crowded():
            self._die()

    def _crowded(self) -> bool:
        params = self.model.phyto_params
        crowd = 0
        for other_id in self.model.space.neighbors_within(self.pos, params.crowding_radius):
            if other_id == self.unique_id:
                continue
            if isinstance(self.model.store.get(other_id), Phyto):
                crowd += 1
        return crowd >= params.crowding_limit


class Zoo(PlanktonAgent):
    species_name = "zoo"

    def __init__(self, unique_id: int, model: Model, direction: float, energy: int):
        super().__init__(unique_id, model, direction)
        self.energy = energy

    def step(self) -> None:
        params = self.model.zoo_params
        self._turn(params.turn_limit)
        self._move(params.speed)
        self.energy -= params.metabolism
        # Certain death once energy <= 0, whatever the roll.
        if self.energy * self.model.random.uniform(0, 1) <= params.death_threshold:
            self._die()
            return
        self._eat()
        self._attempt_reproduce()

    def _eat(self) -> None:
        params = self.model.zoo_params
        for other_id in self.model.space.neighbors_within(self.pos, params.feeding_radius):
            if isinstance(self.model.store.get(other_id), Phyto):
                self.model.store.remove(other_id)
                self.energy += params.eat_gain
                return

    def _attempt_reproduce(self) -> None:
        params = self.model.zoo_params
        if self.energy >= params.reproduce_threshold:
            self.model.store.add(Zoo, self.pos, energy=params.offspring_energy)
            self.energy -= params.offspring_energy


class AgentStore:
    """Owns every live agent and keeps the periodic space in sync with it."""

    def __init__(self, model: Model, space: PeriodicSpace):
        self.model = model
        self.space = space
        self._agents: Dict[int, PlanktonAgent] = {}
        self._by_species: Dict[str, Set[int]] = {}
        self._id_counter = 0

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: int) -> bool:
        return agent_id in self._agents

    def _next_id(self) -> int:
        self._id_counter += 1
        return self._id_counter

    def add(
        self,
        species: type,
        pos: Position,
        direction: Optional[float] = None,
        energy: Optional[int] = None,
    ) -> int:
        if direction is None:
            direction = self.model.random.uniform(0, TWO_PI)
        unique_id = self._next_id()
        if energy is None:
            agent = species(unique_id, self.model, direction)
        else:
            agent = species(unique_id, self.model, direction, energy)
        agent.pos = self.space.add(unique_id, pos)
        self._agents[unique_id] = agent
        self._by_species.setdefault(species.species_name, set()).add(unique_id)
        return unique_id

    def remove(self, agent_id: int) -> None:
        agent = self._agents.pop(agent_id, None)
        if agent is None:
            return
        self.space.remove(agent_id)
        members = self._by_species[agent.species_name]
        members.discard(agent_id)
        agent.remove()
        if not members:
            self.model.register_extinction(agent.species_name)

    def get(self, agent_id: int) -> Optional[PlanktonAgent]:
        return self._agents.get(agent_id)

    def live_ids(self) -> List[int]:
        return list(self._agents)

    def move(self, agent: PlanktonAgent, dx: float, dy: float) -> None:
        agent.pos = self.space.move(agent.unique_id, dx, dy)

    def count(self, species: type) -> int:
        return len(self._by_species.get(species.species_name, ()))

    def agents_of(self, species: type) -> List[PlanktonAgent]:
        ids = self._by_species.get(species.species_name, set())
        return [self._agents[agent_id] for agent_id in sorted(ids)]


class RandomActivationScheduler:
    def __init__(self, model: Model):
        self.model = model
        self.steps = 0

    def permutation(self) -> List[int]:
        order = self.model.store.live_ids()
        self.model.random.shuffle(order)
        return order

    def step(self) -> None:
        self.steps += 1
        for agent_id in self.permutation():
            # Killed earlier this step.
            agent = self.model.store.get(agent_id)
            if agent is not None:
                agent.step()


class PlanktonModel(Model):
    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        random_source: Optional[random.Random] = None,
        **overrides,
    ):
        try:
            config = replace(config or SimulationConfig(), **overrides)
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc
        validate_config(config)
        super().__init__()
        self.config = config
        self.random = random_source if random_source is not None else random.Random(config.seed)
        self.phyto_params = config.phyto_params
        self.zoo_params = config.zoo_params
        self.space = PeriodicSpace(
            config.width, config.height, cell_size=config.cell_size or config.largest_radius()
        )
        self.store = AgentStore(self, self.space)
        self.schedule = RandomActivationScheduler(self)
        self.extinction_step: Dict[str, int] = {}

        self._init_phyto(config.population_phyto)
        self._init_zoo(config.population_zoo)

        self.datacollector = DataCollector(
            model_reporters={
                "step": lambda m: m.schedule.steps,
                "phyto": lambda m: m.count_species(Phyto),
                "zoo": lambda m: m.count_species(Zoo),
                "zoo_health": lambda m: m.average_energy(Zoo),
            }
        )

    def _random_position(self) -> Position:
        return (
            self.random.uniform(0, self.space.width),
            self.random.uniform(0, self.space.height),
        )

    def _init_phyto(self, count: int) -> None:
        for _ in range(count):
            self.store.add(Phyto, self._random_position())

    def _init_zoo(self, count: int) -> None:
        low, high = self.zoo_params.initial_energy
        for _ in range(count):
            pos = self._random_position()
            self.store.add(Zoo, pos, energy=self.random.randint(low, high))

    def count_species(self, species_cls: type) -> int:
        return self.store.count(species_cls)

    def average_energy(self, species_cls: type) -> float:
        energies = [a.energy for a in self.store.agents_of(species_cls)]
        if not energies:
            return 0.0
        return float(sum(energies) / len(energies))

    def register_extinction(self, species_name: str) -> None:
        if species_name not in self.extinction_step:
            self.extinction_step[species_name] = self.schedule.steps
            logger.info("%s extinct at step %d", species_name, self.schedule.steps)

    def snapshot(self) -> List[AgentRecord]:
        records = []
        for agent_id in self.store.live_ids():
            agent = self.store.get(agent_id)
            x, y = agent.pos
            records.append(
                AgentRecord(
                    step=self.schedule.steps,
                    agent_id=agent_id,
                    species=agent.species_name,
                    x=x,
                    y=y,
                    energy=getattr(agent, "energy", None),
                )
            )
        return records

    def step(self) -> None:
        self.schedule.step()
        self.datacollector.collect(self)

    def run_model(self, recorder=None) -> pd.DataFrame:
        return run(self, self.config.steps, recorder)


def run(model: PlanktonModel, steps: int, recorder=None) -> pd.DataFrame:
    """Advance ``model`` by ``steps`` and return its population table.

    After every step ``recorder.record(step, snapshot)`` is called. An empty
    ecosystem keeps producing (empty) snapshots until ``steps`` is reached.
    """
    if steps <= 0:
        raise ConfigurationError("steps must be positive")
    logger.debug(
        "running %d steps from step %d with %d agents",
        steps,
        model.schedule.steps,
        len(model.store),
    )
    for _ in range(steps):
        model.step()
        if recorder is not None:
            recorder.record(model.schedule.steps, model.snapshot())
    return model.datacollector.get_model_vars_dataframe()


def run_simulation(
    config: Optional[SimulationConfig] = None,
    output_dir: Optional[Path] = None,
    record_agents: bool = False,
    frame_every: Optional[int] = None,
) -> Dict:
    model = PlanktonModel(config)
    csv_recorder = None
    recorders = []
    if output_dir is not None:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        if record_agents:
            csv_recorder = CsvRecorder(output_dir / "plankton_agents.csv")
            recorders.append(csv_recorder)
        if frame_every:
            recorders.append(
                FrameRecorder(output_dir / "frames", model.config.extent, every=frame_every)
            )
    df = model.run_model(RecorderGroup(recorders) if recorders else None)
    if csv_recorder is not None:
        csv_recorder.close()

    results = {
        "config": model.config,
        "time_series": df.to_dict("records"),
        "extinction_steps": dict(model.extinction_step),
        "stability": compute_stability_score(df),
    }
    if output_dir is not None:
        df.to_csv(output_dir / "plankton_results.csv", index=False)
        plot_populations(df, output_dir / "population_vs_time.png")
    return results


def _get_agent_positions(model: PlanktonModel):
    positions = {"phyto": ([], []), "zoo": ([], [])}
    for record in model.snapshot():
        xs, ys = positions[record.species]
        xs.append(record.x)
        ys.append(record.y)
    return positions


def run_visual_simulation(
    config: Optional[SimulationConfig] = None,
    show_population_plot: bool = True,
) -> None:
    model = PlanktonModel(config)
    max_steps = model.config.steps

    if show_population_plot:
        fig, (ax_space, ax_pop) = plt.subplots(1, 2, figsize=(11, 5))
    else:
        fig, ax_space = plt.subplots(1, 1, figsize=(6, 6))
        ax_pop = None

    ax_space.set_xlim(0, model.space.width)
    ax_space.set_ylim(0, model.space.height)
    ax_space.set_aspect("equal")
    ax_space.set_title("Plankton Domain")
    ax_space.set_xticks([])
    ax_space.set_yticks([])

    phyto_scatter = ax_space.scatter(
        [], [], marker="o", s=12, c="#5cb85c", label="Phyto", linewidths=0
    )
    zoo_scatter = ax_space.scatter(
        [], [], marker="o", s=40, c="#c9302c", label="Zoo", linewidths=0
    )
    legend_handles = [
        Line2D([0], [0], marker="o", color="w", label="Phyto",
               markerfacecolor="#5cb85c", markersize=6),
        Line2D([0], [0], marker="o", color="w", label="Zoo",
               markerfacecolor="#c9302c", markersize=8),
    ]
    ax_space.legend(handles=legend_handles, loc="upper right", fontsize=8)

    counter_text = ax_space.text(
        0.02,
        0.98,
        "",
        transform=ax_space.transAxes,
        va="top",
        ha="left",
        fontsize=9,
        bbox=dict(facecolor="white", alpha=0.7, edgecolor="none"),
    )

    if ax_pop:
        ax_pop.set_title("Population Over Time")
        ax_pop.set_xlabel("Step")
        ax_pop.set_ylabel("Count")
        pop_lines = {
            "phyto": ax_pop.plot([], [], color="#5cb85c", label="Phyto")[0],
            "zoo": ax_pop.plot([], [], color="#c9302c", label="Zoo")[0],
        }
        ax_pop.legend(loc="upper right", fontsize=8)
        pop_history = {"step": [], "phyto": [], "zoo": []}

    def _to_offsets(points):
        if points[0]:
            return np.column_stack(points)
        return np.empty((0, 2))

    def init():
        phyto_scatter.set_offsets(np.empty((0, 2)))
        zoo_scatter.set_offsets(np.empty((0, 2)))
        counter_text.set_text("")
        if ax_pop:
            for line in pop_lines.values():
                line.set_data([], [])
        return phyto_scatter, zoo_scatter, counter_text

    def update(_frame):
        model.step()
        positions = _get_agent_positions(model)
        phyto_scatter.set_offsets(_to_offsets(positions["phyto"]))
        zoo_scatter.set_offsets(_to_offsets(positions["zoo"]))

        phyto_count = model.count_species(Phyto)
        zoo_count = model.count_species(Zoo)
        counter_text.set_text(
            f"Step: {model.schedule.steps}\n"
            f"Phyto: {phyto_count}\n"
            f"Zoo: {zoo_count}"
        )

        if ax_pop:
            pop_history["step"].append(model.schedule.steps)
            pop_history["phyto"].append(phyto_count)
            pop_history["zoo"].append(zoo_count)
            for name, line in pop_lines.items():
                line.set_data(pop_history["step"], pop_history[name])
            ax_pop.relim()
            ax_pop.autoscale_view()

        return phyto_scatter, zoo_scatter, counter_text

    anim = FuncAnimation(
        fig,
        update,
        init_func=init,
        frames=max_steps,
        interval=100,
        blit=False,
        repeat=False,
    )
    plt.tight_layout()
    plt.show()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plankton ecosystem simulation")
    parser.add_argument(
        "--scenario",
        default=None,
        help="Start from a named preset (baseline, phyto_bloom, grazer_pressure, small_pond).",
    )
    parser.add_argument("--steps", type=int, default=None, help="Number of steps to run.")
    parser.add_argument("--phyto", type=int, default=None, help="Initial phytoplankton count.")
    parser.add_argument("--zoo", type=int, default=None, help="Initial zooplankton count.")
    parser.add_argument("--width", type=float, default=None, help="Domain width.")
    parser.add_argument("--height", type=float, default=None, help="Domain height.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for CSV and plot outputs in batch mode.",
    )
    parser.add_argument(
        "--agents",
        action="store_true",
        help="Also export every per-step agent snapshot to plankton_agents.csv.",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=None,
        metavar="EVERY",
        help="Render a PNG frame every EVERY steps into <output-dir>/frames.",
    )
    parser.add_argument(
        "--visual",
        action="store_true",
        help="Run a real-time visualization instead of batch mode.",
    )
    parser.add_argument(
        "--no-pop-plot",
        action="store_true",
        help="Disable the live population plot in visual mode.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log engine events.")
    return parser


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    config = get_preset(args.scenario) if args.scenario else SimulationConfig()
    overrides = {
        "steps": args.steps,
        "population_phyto": args.phyto,
        "population_zoo": args.zoo,
        "width": args.width,
        "height": args.height,
        "seed": args.seed,
    }
    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    validate_config(config)
    return config


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        config = config_from_args(args)
    except ConfigurationError as exc:
        parser.error(str(exc))

    if args.visual:
        run_visual_simulation(config, show_population_plot=not args.no_pop_plot)
        return

    results = run_simulation(
        config,
        output_dir=args.output_dir,
        record_agents=args.agents,
        frame_every=args.frames,
    )
    final = results["time_series"][-1]
    print(f"Final populations: phyto={final['phyto']} zoo={final['zoo']}")
    for species, step in sorted(results["extinction_steps"].items()):
        print(f"  {species} extinct at step {step}")
    print(f"Ecosystem Stability Score: {results['stability']:.3f}")
    print(build_explanations(results).summary)


if __name__ == "__main__":
    main()
