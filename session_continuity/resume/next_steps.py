"""Next-step suggestions derived from a reconstruction."""

from __future__ import annotations

from typing import List

from ..core.models.domain import WorkItemPhase
from .models import AnomalyKind, Reconstruction

_PHASE_STEPS = {
    WorkItemPhase.planning: "Finish planning {id} and start implementation",
    WorkItemPhase.implementation: "Continue implementing {id}",
    WorkItemPhase.validation: "Finish validating {id} (run the test suite)",
    WorkItemPhase.complete: "{id} is complete; pick the next work item",
    WorkItemPhase.failed: "Investigate why {id} failed before retrying",
    WorkItemPhase.blocked: "Unblock {id}",
}


def suggest_next_steps(rec: Reconstruction, max_steps: int = 5) -> List[str]:
    """
    Ordered, de-duplicated suggestions for whoever resumes the session.

    Repairs come first (missing artifacts, failing tests, uncommitted work),
    then the work item itself, then open pull requests and pending tasks.
    """
    state = rec.work_state
    steps: List[str] = []

    if any(a.kind == AnomalyKind.missing_directory for a in rec.anomalies):
        steps.append("Restore or re-clone the working directory")
    if any(a.kind == AnomalyKind.missing_branch for a in rec.anomalies):
        steps.append("Recreate or locate the missing branch")
    if any(a.kind == AnomalyKind.missing_file for a in rec.anomalies):
        steps.append("Check the modified files that no longer exist")

    item = state.current_work_item
    if item is not None and item.tests_failed:
        steps.append(f"Fix {item.tests_failed} failing test(s) for {item.work_item_id}")
    if state.git is not None and state.git.has_uncommitted_changes:
        steps.append("Review and commit uncommitted changes")
    if item is not None:
        steps.append(_PHASE_STEPS[item.phase].format(id=item.work_item_id))
    if state.git is not None:
        for pr in state.git.open_pull_requests[:2]:
            steps.append(f"Follow up on pull request {pr}")
    if state.plan is not None:
        steps.extend(f"Planned: {i}" for i in state.plan.remaining_items[:2])
    steps.extend(f"Pending: {t}" for t in state.pending_tasks[:2])

    if not steps:
        steps.append("Review recent actions and choose the next work item")

    seen = set()
    unique = []
    for step in steps:
        if step not in seen:
            seen.add(step)
            unique.append(step)
    return unique[:max_steps]
