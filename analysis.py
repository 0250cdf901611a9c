"""
Post-hoc analysis for plankton simulation outputs.

This module does not modify or run simulations. It interprets the population
table produced by a run (rows of step, phyto, zoo, zoo_health) and produces
structured, reproducible explanations.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd


@dataclass
class OutcomeEvidence:
    label: str
    evidence: Dict[str, float]
    justification: str


@dataclass
class AnalysisResult:
    labels: List[OutcomeEvidence]
    summary: str
    detailed: List[str]
    json: Dict


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _mean(values: List[float]) -> float:
    return float(sum(values) / len(values)) if values else 0.0


def _stdev(values: List[float]) -> float:
    return float(statistics.pstdev(values)) if len(values) > 1 else 0.0


def _trend_slope(series: List[float]) -> float:
    if len(series) < 2:
        return 0.0
    n = len(series)
    x_mean = (n - 1) / 2.0
    y_mean = _mean(series)
    num = sum((i - x_mean) * (y - y_mean) for i, y in enumerate(series))
    den = sum((i - x_mean) ** 2 for i in range(n))
    return float(num / den) if den else 0.0


def _variance_ratio(series: List[float]) -> float:
    mean = _mean(series)
    return _stdev(series) / mean if mean else 0.0


def _window(series: List[float], fraction: float = 0.2) -> List[float]:
    if not series:
        return []
    size = max(1, int(len(series) * fraction))
    return series[-size:]


def _dominant_periodicity(series: List[float]) -> float:
    if len(series) < 10:
        return 0.0
    diffs = [series[i + 1] - series[i] for i in range(len(series) - 1)]
    sign_changes = sum(
        1 for i in range(len(diffs) - 1) if diffs[i] * diffs[i + 1] < 0
    )
    return sign_changes / max(1, len(series) - 2)


def compute_stability_score(df: pd.DataFrame) -> float:
    """Score in [0, 1] averaging population stability, coexistence and survival."""
    if df.empty:
        return 0.0
    populations = df[["phyto", "zoo"]].sum(axis=1)
    mean_pop = populations.mean()
    pop_std = populations.std(ddof=0) if mean_pop > 0 else 0.0
    pop_stability = clamp(1.0 - (pop_std / mean_pop if mean_pop else 1.0))

    coexistence = float(((df["phyto"] > 0) & (df["zoo"] > 0)).mean())

    extinction_times = []
    for col in ("phyto", "zoo"):
        extinct_rows = [i for i, count in enumerate(df[col].tolist()) if count == 0]
        if extinct_rows:
            extinction_times.append(extinct_rows[0])
    if extinction_times:
        survival = clamp(min(extinction_times) / max(1, len(df) - 1))
    else:
        survival = 1.0

    return float((pop_stability + coexistence + survival) / 3.0)


def classify_outcomes(results: Dict) -> List[OutcomeEvidence]:
    ts = results.get("time_series", [])
    if not ts:
        return [
            OutcomeEvidence(
                label="no_data",
                evidence={"steps": 0},
                justification="No time series data available.",
            )
        ]

    phyto = [row["phyto"] for row in ts]
    zoo = [row["zoo"] for row in ts]

    labels: List[OutcomeEvidence] = []
    extinction = results.get("extinction_steps", {})

    if extinction:
        first_ext = min(extinction.values())
        labels.append(
            OutcomeEvidence(
                label="extinction_event",
                evidence={"first_extinction_step": float(first_ext)},
                justification=f"At least one species extinct at step {first_ext}.",
            )
        )

    end_phyto = phyto[-1]
    end_zoo = zoo[-1]
    if end_phyto == 0 or end_zoo == 0:
        labels.append(
            OutcomeEvidence(
                label="collapse",
                evidence={"phyto_end": float(end_phyto), "zoo_end": float(end_zoo)},
                justification="At least one trophic level collapsed by the end.",
            )
        )

    phyto_var_ratio = _variance_ratio(_window(phyto))
    zoo_var_ratio = _variance_ratio(_window(zoo))
    if phyto_var_ratio < 0.2 and zoo_var_ratio < 0.2 and end_phyto > 0 and end_zoo > 0:
        labels.append(
            OutcomeEvidence(
                label="equilibrium",
                evidence={"phyto_var_ratio": phyto_var_ratio, "zoo_var_ratio": zoo_var_ratio},
                justification="Low variance in final window for phyto and zoo.",
            )
        )
    else:
        periodicity = _dominant_periodicity(_window(phyto, fraction=0.5))
        if periodicity > 0.25 and end_phyto > 0 and end_zoo > 0:
            labels.append(
                OutcomeEvidence(
                    label="oscillation",
                    evidence={"phyto_periodicity": periodicity},
                    justification="Frequent sign changes in phyto growth indicate oscillation.",
                )
            )

    phyto_trend = _trend_slope(_window(phyto))
    if end_zoo == 0 and end_phyto > 0 and phyto_trend > 0:
        labels.append(
            OutcomeEvidence(
                label="phyto_bloom",
                evidence={"phyto_end": float(end_phyto), "phyto_trend": phyto_trend},
                justification="Phyto keeps growing once grazers are gone.",
            )
        )

    if end_phyto > 0 and end_zoo > 0:
        ratio = end_zoo / max(1, end_phyto)
        if ratio < 0.02 or ratio > 0.5:
            labels.append(
                OutcomeEvidence(
                    label="trophic_imbalance",
                    evidence={"zoo_phyto_ratio": ratio},
                    justification="Zoo-to-phyto ratio outside typical bounds.",
                )
            )

    return labels


def attribute_causes(results: Dict, scenario_params: Optional[Dict] = None) -> List[str]:
    config = results.get("config")
    ts = results.get("time_series", [])
    if not ts:
        return ["No data for causal attribution."]

    end_phyto = ts[-1]["phyto"]
    end_zoo = ts[-1]["zoo"]
    zoo_health = [row.get("zoo_health", 0.0) for row in ts]

    factors = []
    if config:
        area = getattr(config, "width", 1.0) * getattr(config, "height", 1.0)
        density = getattr(config, "population_phyto", 0) / area if area else 0.0
        if density > 0.1:
            factors.append(
                "High initial phyto density triggers early overcrowding deaths."
            )
        if getattr(config, "population_zoo", 0) > getattr(config, "population_phyto", 1) * 0.2:
            factors.append(
                "High zoo-to-phyto ratio increases early grazing pressure."
            )

    if end_phyto == 0:
        factors.append(
            "Phyto extinction implies grazing outpaced stochastic reproduction."
        )
    if end_zoo == 0:
        factors.append(
            "Zoo extinction suggests too few phyto encounters to offset metabolism."
        )
    if zoo_health and _mean(zoo_health) < 3.0 and end_zoo > 0:
        factors.append(
            "Low mean zoo energy keeps grazers close to the starvation threshold."
        )

    if scenario_params:
        for key, value in scenario_params.items():
            factors.append(f"Scenario parameter {key} set to {value}.")

    if not factors:
        factors.append("No dominant causal factors detected in parameterization.")
    return factors


def build_explanations(results: Dict, scenario_params: Optional[Dict] = None) -> AnalysisResult:
    labels = classify_outcomes(results)
    causes = attribute_causes(results, scenario_params=scenario_params)

    summary = (
        "Outcomes: " + ", ".join(l.label for l in labels) if labels else "No outcomes detected."
    )

    detailed = []
    for label in labels:
        detailed.append(f"{label.label}: {label.justification} Evidence: {label.evidence}")
    for cause in causes:
        detailed.append(f"Cause: {cause}")

    json_payload = {
        "labels": [
            {"label": l.label, "evidence": l.evidence, "justification": l.justification}
            for l in labels
        ],
        "causes": causes,
        "summary": summary,
    }

    return AnalysisResult(labels=labels, summary=summary, detailed=detailed, json=json_payload)
