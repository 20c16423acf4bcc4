"""Unit tests for the resume summary and handoff document."""

from session_continuity.core.models.domain import (
    ActionSummary,
    FileChange,
    GitSnapshot,
    ReconstructionSource,
    ResolutionStrategy,
    WorkItemPhase,
    WorkItemSnapshot,
    WorkState,
)
from session_continuity.resume.engine import build_handoff, build_summary
from session_continuity.resume.models import Reconstruction
from session_continuity.resume.scoring import score


def _rec(**kw) -> Reconstruction:
    state = WorkState(
        current_work_item=WorkItemSnapshot(
            work_item_id="W-3", title="Search", phase=WorkItemPhase.implementation, tests_passed=10, tests_failed=1
        ),
        modified_files=[FileChange(path="search.py"), FileChange(path="index.py")],
        git=GitSnapshot(branch="feat/search", commit_count=4),
        recent_actions=[ActionSummary(action="Edited", target="search.py", outcome="ok")],
    )
    fields = dict(
        session_id="proj-PS-000001",
        project="proj",
        source=ReconstructionSource.checkpoint,
        work_state=state,
        age_minutes=2,
        checkpoint_id="c-9",
    )
    fields.update(kw)
    return Reconstruction(**fields)


class TestBuildSummary:
    """Summary counts and text."""

    def test_counts(self):
        """Test work item status and file/test/commit counts."""
        summary = build_summary(_rec())

        assert summary.work_item_id == "W-3"
        assert summary.work_item_title == "Search"
        assert summary.work_item_status == "implementation"
        assert summary.files_modified == 2
        assert summary.tests_passed == 10
        assert summary.tests_failed == 1
        assert summary.commits == 4
        assert summary.branch == "feat/search"

    def test_text(self):
        """Test the status line mentions the essentials."""
        text = build_summary(_rec()).text

        assert text.startswith("Resuming proj-PS-000001 (proj) from checkpoint, 2 min old.")
        assert "Work item W-3 'Search' is in implementation." in text
        assert "2 file(s) modified." in text
        assert "Tests: 10 passed, 1 failed." in text
        assert "4 commit(s) on feat/search." in text

    def test_empty_state(self):
        """Test a bare reconstruction summarizes without counts."""
        summary = build_summary(_rec(work_state=WorkState(), source=ReconstructionSource.session_record))

        assert summary.work_item_id is None
        assert summary.tests_passed is None
        assert summary.commits is None
        assert summary.files_modified == 0
        assert summary.text == "Resuming proj-PS-000001 (proj) from session_record, 2 min old."


class TestBuildHandoff:
    """Handoff markdown."""

    def test_sections(self):
        """Test header, summary, steps and actions are rendered."""
        rec = _rec(causal_chain=["Started W-3", "Commit abcd"])
        confidence = score(rec)
        summary = build_summary(rec)

        doc = build_handoff(rec, ResolutionStrategy.exact, confidence, summary, ["Fix tests", "Commit"])

        assert doc.startswith("# Session handoff: proj-PS-000001\n")
        assert "- Resolved via: exact" in doc
        assert "- Source: checkpoint (c-9)" in doc
        assert "- Confidence: 100/100 (high)" in doc
        assert summary.text in doc
        assert "1. Fix tests\n2. Commit" in doc
        assert "## Causal chain" in doc
        assert "- Edited search.py (ok)" in doc
        assert "## Warnings" not in doc

    def test_warnings_section(self):
        """Test low confidence warnings appear in the handoff."""
        rec = _rec(source=ReconstructionSource.events, checkpoint_id=None)
        confidence = score(rec)

        doc = build_handoff(rec, ResolutionStrategy.newest, confidence, build_summary(rec), [])

        assert "## Warnings" in doc
        assert "Low confidence (50/100)" in doc
        assert "## Next steps" not in doc
        assert "- Source: events\n" in doc
