"""Tests for post-hoc population analysis."""

from __future__ import annotations

import pandas as pd

from analysis import build_explanations, classify_outcomes, compute_stability_score
from scenario import SimulationConfig


def _series(phyto, zoo):
    return [
        {"step": i + 1, "phyto": p, "zoo": z, "zoo_health": 5.0}
        for i, (p, z) in enumerate(zip(phyto, zoo))
    ]


def _labels(results):
    return [label.label for label in classify_outcomes(results)]


def test_no_data() -> None:
    assert _labels({"time_series": []}) == ["no_data"]


def test_steady_populations_are_equilibrium() -> None:
    results = {"time_series": _series([200] * 50, [20] * 50)}
    assert _labels(results) == ["equilibrium"]


def test_zoo_extinction_with_growing_phyto() -> None:
    phyto = list(range(100, 150))
    zoo = [5] * 25 + [0] * 25
    results = {"time_series": _series(phyto, zoo), "extinction_steps": {"zoo": 26}}
    labels = _labels(results)
    assert "extinction_event" in labels
    assert "collapse" in labels
    assert "phyto_bloom" in labels


def test_oscillating_phyto() -> None:
    phyto = [60, 140] * 25
    results = {"time_series": _series(phyto, [20] * 50)}
    assert "oscillation" in _labels(results)


def test_trophic_imbalance() -> None:
    results = {"time_series": _series([10] * 20, [50] * 20)}
    assert "trophic_imbalance" in _labels(results)


def test_stability_score_bounds() -> None:
    steady = pd.DataFrame({"phyto": [100] * 10, "zoo": [10] * 10})
    assert compute_stability_score(steady) == 1.0
    crashed = pd.DataFrame({"phyto": [100, 50, 0, 0], "zoo": [10, 0, 0, 0]})
    score = compute_stability_score(crashed)
    assert 0.0 <= score < 0.5
    assert compute_stability_score(pd.DataFrame({"phyto": [], "zoo": []})) == 0.0


def test_build_explanations_with_config() -> None:
    results = {
        "config": SimulationConfig(population_phyto=100, population_zoo=40),
        "time_series": _series([0] * 10, [3] * 10),
        "extinction_steps": {"phyto": 1},
    }
    analysis = build_explanations(results, scenario_params={"seed": 3})
    assert analysis.summary.startswith("Outcomes: ")
    assert "collapse" in analysis.summary
    causes = analysis.json["causes"]
    assert any("grazing pressure" in cause for cause in causes)
    assert any("Phyto extinction" in cause for cause in causes)
    assert "Scenario parameter seed set to 3." in causes
