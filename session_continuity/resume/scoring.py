"""Confidence scoring for reconstructions.

``score`` is a pure function of the reconstruction:

- baseline by source and age: a checkpoint under 5 minutes old scores 100,
  under an hour 90, under a day 70, older 50; every other source starts at 50;
- deductions: 10 per missing file or working directory, 5 per missing
  branch, 5 per full 30 minutes between the reconstructed state and the
  session's last heartbeat;
- the result is clamped to [50, 100]. Anything below 80 carries an explicit
  low-confidence warning.
"""

from __future__ import annotations

from typing import List, Tuple

from ..core.models.domain import ReconstructionSource
from .models import AnomalyKind, ConfidenceLevel, ConfidenceScore, Reconstruction

FLOOR = 50
CEILING = 100
WARN_BELOW = 80
HIGH_AT = 90

# (max age in minutes, baseline) for checkpoint-sourced reconstructions.
CHECKPOINT_TIERS: Tuple[Tuple[float, int], ...] = ((5, 100), (60, 90), (24 * 60, 70))

DEDUCTIONS = {
    AnomalyKind.missing_file: 10,
    AnomalyKind.missing_directory: 10,
    AnomalyKind.missing_branch: 5,
}
GAP_STEP_MINUTES = 30
GAP_DEDUCTION = 5


def baseline(rec: Reconstruction) -> Tuple[int, str]:
    if rec.source != ReconstructionSource.checkpoint:
        return FLOOR, f"reconstructed from {rec.source.value}"
    for max_age, value in CHECKPOINT_TIERS:
        if rec.age_minutes < max_age:
            return value, f"checkpoint {rec.age_minutes:.0f} min old"
    return FLOOR, f"checkpoint {rec.age_minutes / 60:.0f} h old"


def score(rec: Reconstruction) -> ConfidenceScore:
    """Score ``rec`` between 50 and 100 with the reasons and warnings behind it."""
    value, reason = baseline(rec)
    parts: List[str] = [reason]
    warnings: List[str] = list(rec.warnings)

    anomaly_penalty = sum(DEDUCTIONS.get(a.kind, 0) for a in rec.anomalies)
    if anomaly_penalty:
        parts.append(f"-{anomaly_penalty} for {len(rec.anomalies)} missing artifact(s)")

    gap_steps = int(rec.activity_gap_minutes // GAP_STEP_MINUTES)
    gap_penalty = gap_steps * GAP_DEDUCTION
    if gap_penalty:
        parts.append(f"-{gap_penalty} for {rec.activity_gap_minutes:.0f} min of activity after the snapshot")
        warnings.append(
            f"Session kept running for {rec.activity_gap_minutes:.0f} min after the reconstructed state; "
            "recent work may be missing"
        )

    value = max(FLOOR, min(CEILING, value - anomaly_penalty - gap_penalty))

    if value >= HIGH_AT:
        level = ConfidenceLevel.high
    elif value >= WARN_BELOW:
        level = ConfidenceLevel.moderate
    else:
        level = ConfidenceLevel.low
        warnings.append(f"Low confidence ({value}/100): verify the reconstructed state before continuing")

    return ConfidenceScore(value=value, level=level, reason="; ".join(parts), warnings=warnings)
