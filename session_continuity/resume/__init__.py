"""Resume pipeline: resolve a hint, reconstruct state, score it and hand it off."""

from .engine import DISAMBIGUATION_MESSAGE, ResumeEngine, build_handoff, build_summary
from .models import (
    Anomaly,
    AnomalyKind,
    ConfidenceLevel,
    ConfidenceScore,
    Disambiguation,
    Reconstruction,
    Resolution,
    ResumeNotFound,
    ResumeResponse,
    ResumeResult,
    ResumeSummary,
    SessionCandidate,
)
from .next_steps import suggest_next_steps
from .reconstructor import ArtifactValidator, ContextReconstructor, LocalArtifactValidator
from .resolver import InstanceResolver
from .scoring import score

__all__ = [
    "Anomaly",
    "AnomalyKind",
    "ArtifactValidator",
    "ConfidenceLevel",
    "ConfidenceScore",
    "ContextReconstructor",
    "DISAMBIGUATION_MESSAGE",
    "Disambiguation",
    "InstanceResolver",
    "LocalArtifactValidator",
    "Reconstruction",
    "Resolution",
    "ResumeEngine",
    "ResumeNotFound",
    "ResumeResponse",
    "ResumeResult",
    "ResumeSummary",
    "SessionCandidate",
    "build_handoff",
    "build_summary",
    "score",
    "suggest_next_steps",
]
