"""
Snapshot consumers for the plankton simulator.

A recorder is anything with ``record(step, snapshot)``. The engine calls it
once per step, in step order, with a list of agent records whose leading
fields are ``(step, agent_id, species)``.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

SNAPSHOT_COLUMNS = ["step", "agent_id", "species", "x", "y", "energy"]
SPECIES = ("phyto", "zoo")
SPECIES_COLORS = {"phyto": "#5cb85c", "zoo": "#c9302c"}


class SnapshotRecorder:
    """Keeps every snapshot row in memory."""

    def __init__(self):
        self.steps: List[int] = []
        self.rows: List[Tuple] = []

    def record(self, step: int, snapshot: Sequence) -> None:
        if self.steps and step <= self.steps[-1]:
            raise ValueError(
                f"snapshot for step {step} arrived after step {self.steps[-1]}"
            )
        self.steps.append(step)
        self.rows.extend(tuple(row) for row in snapshot)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=SNAPSHOT_COLUMNS)

    def population_counts(self) -> pd.DataFrame:
        df = self.to_frame()
        counts = (
            df.groupby(["step", "species"]).size().unstack(fill_value=0)
            if not df.empty
            else pd.DataFrame()
        )
        # Steps with an empty snapshot still get a row of zeros.
        counts = counts.reindex(index=self.steps, columns=list(SPECIES), fill_value=0)
        counts.index.name = "step"
        return counts.reset_index().astype({name: int for name in SPECIES})


class CsvRecorder(SnapshotRecorder):
    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)

    def close(self) -> None:
        self.to_frame().to_csv(self.path, index=False)

    def __enter__(self) -> "CsvRecorder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()


def plot_populations(df: pd.DataFrame, path: Path) -> None:
    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(df["step"], df["phyto"], color=SPECIES_COLORS["phyto"], label="Phyto")
    ax.plot(df["step"], df["zoo"], color=SPECIES_COLORS["zoo"], label="Zoo")
    ax.set_title("Population vs Time")
    ax.set_xlabel("Step")
    ax.set_ylabel("Population")
    ax.legend()
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)


def render_frame(
    snapshot: Sequence,
    extent: Tuple[float, float],
    path: Path,
    title: Optional[str] = None,
) -> None:
    """Draw one snapshot as a scatter image, e.g. a frame of a video."""
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.set_xlim(0, extent[0])
    ax.set_ylim(0, extent[1])
    ax.set_aspect("equal")
    ax.set_xticks([])
    ax.set_yticks([])
    for species in SPECIES:
        points = [(row[3], row[4]) for row in snapshot if row[2] == species]
        offsets = np.array(points) if points else np.empty((0, 2))
        ax.scatter(
            offsets[:, 0],
            offsets[:, 1],
            s=12 if species == "phyto" else 40,
            c=SPECIES_COLORS[species],
            label=species.capitalize(),
            linewidths=0,
        )
    if title:
        ax.set_title(title)
    ax.legend(loc="upper right", fontsize=8)
    fig.savefig(path, dpi=100)
    plt.close(fig)


class FrameRecorder:
    """Writes a PNG per recorded step, for stitching into a video."""

    def __init__(self, directory: Path, extent: Tuple[float, float], every: int = 1):
        if every <= 0:
            raise ValueError("every must be positive")
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.extent = extent
        self.every = every
        self.frames: List[Path] = []

    def record(self, step: int, snapshot: Sequence) -> None:
        if step % self.every:
            return
        path = self.directory / f"frame_{step:05d}.png"
        render_frame(snapshot, self.extent, path, title=f"Step {step}")
        self.frames.append(path)


class RecorderGroup:
    def __init__(self, recorders: Sequence):
        self.recorders = list(recorders)

    def record(self, step: int, snapshot: Sequence) -> None:
        for recorder in self.recorders:
            recorder.record(step, snapshot)
