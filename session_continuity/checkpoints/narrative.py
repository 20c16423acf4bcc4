"""Recovery narrative rendering.

The narrative is derived from a stored checkpoint only (never from the
clock or the filesystem), so rendering the same checkpoint twice yields the
same text.
"""

from __future__ import annotations

from typing import List

from ..core.models.domain import Checkpoint, WorkState

MAX_LISTED_FILES = 20
MAX_LISTED_ACTIONS = 10


def _work_section(state: WorkState) -> List[str]:
    item = state.current_work_item
    if item is None:
        return ["## Current work", "", "- No work item recorded", ""]
    title = f": {item.title}" if item.title else ""
    lines = ["## Current work", "", f"- {item.work_item_id}{title} ({item.phase.value})"]
    if item.tests_passed is not None or item.tests_failed is not None:
        tests = f"- Tests: {item.tests_passed or 0} passed, {item.tests_failed or 0} failed"
        if item.coverage_percent is not None:
            tests += f", coverage {item.coverage_percent:g}%"
        lines.append(tests)
    return lines + [""]


def _files_section(state: WorkState) -> List[str]:
    if not state.modified_files:
        return []
    lines = [f"## Modified files ({len(state.modified_files)})", ""]
    for change in state.modified_files[:MAX_LISTED_FILES]:
        lines.append(f"- {change.path} ({change.status.value})")
    extra = len(state.modified_files) - MAX_LISTED_FILES
    if extra > 0:
        lines.append(f"- ... and {extra} more")
    return lines + [""]


def _git_section(state: WorkState) -> List[str]:
    git = state.git
    if git is None:
        return []
    lines = ["## Version control", ""]
    if git.branch:
        lines.append(f"- Branch: {git.branch}")
    if git.last_commit:
        lines.append(f"- Last commit: {git.last_commit}")
    lines.append(f"- Commits: {git.commit_count} ({git.commits_ahead} ahead)")
    if git.has_uncommitted_changes:
        lines.append(
            f"- Uncommitted: {len(git.staged_files)} staged, "
            f"{len(git.unstaged_files)} unstaged, {len(git.untracked_files)} untracked"
        )
    if git.open_pull_requests:
        lines.append(f"- Open pull requests: {', '.join(git.open_pull_requests)}")
    return lines + [""]


def _bullets(title: str, items: List[str]) -> List[str]:
    if not items:
        return []
    return [f"## {title}", ""] + [f"- {i}" for i in items] + [""]


def _instructions(state: WorkState) -> List[str]:
    steps: List[str] = []
    env = state.environment
    if env is not None and env.working_directory:
        steps.append(f"Change to `{env.working_directory}`")
    if state.git is not None and state.git.branch:
        steps.append(f"Check out branch `{state.git.branch}`")
    if state.git is not None and state.git.has_uncommitted_changes:
        steps.append("Review uncommitted changes before continuing")
    item = state.current_work_item
    if item is not None:
        if item.tests_failed:
            steps.append(f"Fix {item.tests_failed} failing test(s) for {item.work_item_id}")
        steps.append(f"Continue {item.work_item_id} from the {item.phase.value} phase")
    if state.pending_tasks:
        steps.append(f"Pick up pending task: {state.pending_tasks[0]}")
    if not steps:
        steps.append("Review the recent actions above and decide the next step")
    return ["## Resume instructions", ""] + [f"{n}. {s}" for n, s in enumerate(steps, start=1)]


def build_recovery_narrative(checkpoint: Checkpoint) -> str:
    """Render the markdown recovery narrative for ``checkpoint``."""
    state = checkpoint.work_state
    header = [
        f"# Recovery: {checkpoint.session_id} checkpoint #{checkpoint.sequence_num}",
        "",
        f"- Kind: {checkpoint.kind.value}",
        f"- Taken: {checkpoint.created_at.isoformat()}",
    ]
    if checkpoint.context_percent is not None:
        header.append(f"- Context usage: {checkpoint.context_percent}%")
    if checkpoint.note:
        header.append(f"- Note: {checkpoint.note}")
    header.append("")

    actions = []
    for a in state.recent_actions[-MAX_LISTED_ACTIONS:]:
        text = a.action + (f" {a.target}" if a.target else "")
        if a.outcome:
            text += f" -> {a.outcome}"
        actions.append(text)

    plan: List[str] = []
    if state.plan is not None:
        if state.plan.current_phase:
            plan.append(f"Phase: {state.plan.current_phase}")
        plan += [f"[x] {i}" for i in state.plan.completed_items]
        plan += [f"[ ] {i}" for i in state.plan.remaining_items]

    env: List[str] = []
    if state.environment is not None:
        if state.environment.project:
            env.append(f"Project: {state.environment.project}")
        if state.environment.working_directory:
            env.append(f"Working directory: {state.environment.working_directory}")
        if state.environment.host_machine:
            env.append(f"Host: {state.environment.host_machine}")

    lines = (
        header
        + _work_section(state)
        + _files_section(state)
        + _git_section(state)
        + _bullets("Plan", plan)
        + _bullets("Recent actions", actions)
        + _bullets("Pending tasks", state.pending_tasks)
        + _bullets("Important context", state.important_context)
        + _bullets("Environment", env)
        + _instructions(state)
    )
    return "\n".join(lines).rstrip() + "\n"
