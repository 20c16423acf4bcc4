"""Unit tests for confidence scoring."""

import pytest

from session_continuity.core.models.domain import ReconstructionSource, WorkState
from session_continuity.resume.models import Anomaly, AnomalyKind, ConfidenceLevel, Reconstruction
from session_continuity.resume.scoring import score


def _rec(source=ReconstructionSource.checkpoint, age=0.0, gap=0.0, anomalies=(), warnings=()) -> Reconstruction:
    return Reconstruction(
        session_id="proj-PS-000001",
        project="proj",
        source=source,
        work_state=WorkState(),
        age_minutes=age,
        activity_gap_minutes=gap,
        anomalies=list(anomalies),
        warnings=list(warnings),
    )


def _anomaly(kind: AnomalyKind) -> Anomaly:
    return Anomaly(kind=kind, target="x", message=f"{kind.value}: x")


class TestBaseline:
    """Baselines by source and checkpoint age."""

    @pytest.mark.parametrize(
        "age,expected",
        [(0, 100), (2, 100), (4.9, 100), (5, 90), (59, 90), (60, 70), (24 * 60 - 1, 70), (24 * 60, 50), (10_000, 50)],
    )
    def test_checkpoint_age_tiers(self, age, expected):
        """Test fresher checkpoints score higher."""
        assert score(_rec(age=age)).value == expected

    @pytest.mark.parametrize(
        "source",
        [ReconstructionSource.events, ReconstructionSource.command_history, ReconstructionSource.session_record],
    )
    def test_non_checkpoint_sources(self, source):
        """Test every other source starts at the floor."""
        result = score(_rec(source=source))

        assert result.value == 50
        assert result.level == ConfidenceLevel.low
        assert source.value in result.reason


class TestDeductions:
    """Missing artifacts and activity gaps lower the score."""

    def test_missing_artifacts(self):
        """Test files and directories cost 10, branches 5."""
        rec = _rec(
            anomalies=[
                _anomaly(AnomalyKind.missing_file),
                _anomaly(AnomalyKind.missing_directory),
                _anomaly(AnomalyKind.missing_branch),
            ]
        )

        assert score(rec).value == 75

    def test_activity_gap(self):
        """Test every full 30 minutes of later activity costs 5."""
        assert score(_rec(gap=29)).value == 100
        assert score(_rec(gap=30)).value == 95
        assert score(_rec(gap=95)).value == 85

    def test_clamped_to_floor(self):
        """Test the score never drops below 50."""
        rec = _rec(age=100, anomalies=[_anomaly(AnomalyKind.missing_file)] * 10, gap=600)

        assert score(rec).value == 50


class TestLevelsAndWarnings:
    """Levels and low-confidence warnings."""

    def test_high(self):
        """Test a fresh checkpoint is high confidence with no warnings."""
        result = score(_rec(age=1))

        assert result.level == ConfidenceLevel.high
        assert result.warnings == []

    def test_moderate(self):
        """Test 80 to 89 is moderate and does not warn."""
        result = score(_rec(age=10, anomalies=[_anomaly(AnomalyKind.missing_file)]))

        assert result.value == 80
        assert result.level == ConfidenceLevel.moderate
        assert not any("Low confidence" in w for w in result.warnings)

    def test_low_confidence_warns(self):
        """Test scores below 80 carry an explicit warning."""
        result = score(_rec(age=120))

        assert result.value == 70
        assert result.level == ConfidenceLevel.low
        assert any("Low confidence (70/100)" in w for w in result.warnings)

    def test_reconstruction_warnings_carried(self):
        """Test warnings from reconstruction are kept first."""
        result = score(_rec(warnings=["Working directory no longer exists: /x"]))

        assert result.warnings[0] == "Working directory no longer exists: /x"
