from __future__ import annotations

import random

import matplotlib

matplotlib.use("Agg")

import pytest

from plankton_sim import PlanktonModel


class ScriptedRandom(random.Random):
    """Random stream with pinned ``uniform`` and ``random`` draws.

    ``uniform(a, b)`` returns ``a + (b - a) * fraction``, so the default
    fraction of 0.5 means "no turn" for the symmetric turn draws. Shuffles
    and integer draws stay seeded and random.
    """

    def __init__(self, seed: int = 0, fraction: float = 0.5, roll: float = 0.99):
        super().__init__(seed)
        self.fraction = fraction
        self.roll = roll

    def uniform(self, a, b):
        return a + (b - a) * self.fraction

    def random(self):
        return self.roll

    def getrandbits(self, k):
        return super().getrandbits(k)


@pytest.fixture
def scripted_random() -> ScriptedRandom:
    return ScriptedRandom(seed=1)


@pytest.fixture
def empty_model(scripted_random: ScriptedRandom) -> PlanktonModel:
    return PlanktonModel(
        population_phyto=0,
        population_zoo=0,
        random_source=scripted_random,
    )


@pytest.fixture
def make_model():
    """Build an empty model driven by a ScriptedRandom stream."""

    def _make(fraction: float = 0.5, roll: float = 0.99, seed: int = 1, **overrides):
        overrides.setdefault("population_phyto", 0)
        overrides.setdefault("population_zoo", 0)
        stream = ScriptedRandom(seed=seed, fraction=fraction, roll=roll)
        return PlanktonModel(random_source=stream, **overrides)

    return _make
