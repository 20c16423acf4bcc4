"""Per-kind event payload models and the central validation registry.

Every ``EventKind`` maps to exactly one payload model. ``validate_payload``
is called at the append boundary: unknown kinds, missing required fields and
wrongly-typed fields are rejected with ``ValidationError`` before anything
touches the database.

Payload models accept unknown extra fields and keep them, so events written
by a newer release (with additional optional fields) stay readable and
re-validatable by older ones.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from ..core.errors import ValidationError
from ..core.models.domain import Event, EventKind


class EventPayload(BaseModel):
    """Base class for payload variants."""

    model_config = ConfigDict(extra="allow")


class SessionRegisteredPayload(EventPayload):
    project: str
    role: Optional[str] = None
    host_machine: Optional[str] = None


class SessionHeartbeatPayload(EventPayload):
    context_percent: Optional[int] = Field(default=None, ge=0, le=100)
    current_work_item: Optional[str] = None


class SessionClosedPayload(EventPayload):
    reason: Optional[str] = None


class WorkPlannedPayload(EventPayload):
    work_item_id: str
    title: Optional[str] = None
    estimate_hours: Optional[float] = Field(default=None, ge=0)


class WorkStartedPayload(EventPayload):
    work_item_id: str
    title: Optional[str] = None


class WorkCompletedPayload(EventPayload):
    work_item_id: str
    summary: Optional[str] = None
    files_changed: Optional[int] = Field(default=None, ge=0)


class WorkFailedPayload(EventPayload):
    work_item_id: str
    reason: str


class SuiteStartedPayload(EventPayload):
    suite: Optional[str] = None
    work_item_id: Optional[str] = None


class SuitePassedPayload(EventPayload):
    passed: int = Field(ge=0)
    failed: int = Field(default=0, ge=0)
    coverage_percent: Optional[float] = Field(default=None, ge=0, le=100)
    work_item_id: Optional[str] = None


class SuiteFailedPayload(EventPayload):
    failed: int = Field(ge=1)
    passed: int = Field(default=0, ge=0)
    failures: List[str] = Field(default_factory=list)
    work_item_id: Optional[str] = None


class ValidationResultPayload(EventPayload):
    check: str
    details: Optional[str] = None
    work_item_id: Optional[str] = None


class CommitCreatedPayload(EventPayload):
    sha: str = Field(min_length=4)
    message: Optional[str] = None
    branch: Optional[str] = None
    files: List[str] = Field(default_factory=list)


class PullRequestCreatedPayload(EventPayload):
    pr_number: int = Field(ge=1)
    title: Optional[str] = None
    url: Optional[str] = None
    branch: Optional[str] = None


class PullRequestMergedPayload(EventPayload):
    pr_number: int = Field(ge=1)
    merged_by: Optional[str] = None


class DeploymentStartedPayload(EventPayload):
    environment: str
    version: Optional[str] = None


class DeploymentCompletedPayload(EventPayload):
    environment: str
    version: Optional[str] = None
    url: Optional[str] = None


class DeploymentFailedPayload(EventPayload):
    environment: str
    reason: str


class ContextUpdatedPayload(EventPayload):
    context_percent: int = Field(ge=0, le=100)


class CheckpointCreatedPayload(EventPayload):
    checkpoint_id: str
    checkpoint_kind: Optional[str] = None


class CheckpointLoadedPayload(EventPayload):
    checkpoint_id: str


class FeatureRequestedPayload(EventPayload):
    description: str
    requested_by: Optional[str] = None


class TaskSpawnedPayload(EventPayload):
    task_id: str
    description: Optional[str] = None
    worker: Optional[str] = None


class UserMessagePayload(EventPayload):
    text: str


class AssistantStartedPayload(EventPayload):
    model: Optional[str] = None
    prompt_summary: Optional[str] = None


class SpawnDecidedPayload(EventPayload):
    task_id: str
    decision: str
    reason: Optional[str] = None


class ToolInvokedPayload(EventPayload):
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPayload(EventPayload):
    tool_name: str
    output_summary: Optional[str] = None
    exit_code: Optional[int] = None


class ErrorPayload(EventPayload):
    message: str
    error_type: Optional[str] = None
    recoverable: Optional[bool] = None


PAYLOAD_SCHEMAS: Dict[EventKind, Type[EventPayload]] = {
    EventKind.session_registered: SessionRegisteredPayload,
    EventKind.session_heartbeat: SessionHeartbeatPayload,
    EventKind.session_closed: SessionClosedPayload,
    EventKind.work_planned: WorkPlannedPayload,
    EventKind.work_started: WorkStartedPayload,
    EventKind.work_completed: WorkCompletedPayload,
    EventKind.work_failed: WorkFailedPayload,
    EventKind.test_started: SuiteStartedPayload,
    EventKind.test_passed: SuitePassedPayload,
    EventKind.test_failed: SuiteFailedPayload,
    EventKind.validation_passed: ValidationResultPayload,
    EventKind.validation_failed: ValidationResultPayload,
    EventKind.commit_created: CommitCreatedPayload,
    EventKind.pr_created: PullRequestCreatedPayload,
    EventKind.pr_merged: PullRequestMergedPayload,
    EventKind.deployment_started: DeploymentStartedPayload,
    EventKind.deployment_completed: DeploymentCompletedPayload,
    EventKind.deployment_failed: DeploymentFailedPayload,
    EventKind.context_updated: ContextUpdatedPayload,
    EventKind.checkpoint_created: CheckpointCreatedPayload,
    EventKind.checkpoint_loaded: CheckpointLoadedPayload,
    EventKind.feature_requested: FeatureRequestedPayload,
    EventKind.task_spawned: TaskSpawnedPayload,
    EventKind.user_message: UserMessagePayload,
    EventKind.assistant_started: AssistantStartedPayload,
    EventKind.spawn_decided: SpawnDecidedPayload,
    EventKind.tool_invoked: ToolInvokedPayload,
    EventKind.tool_result: ToolResultPayload,
    EventKind.error: ErrorPayload,
}


def parse_kind(kind: Union[EventKind, str]) -> EventKind:
    """Coerce ``kind`` to an ``EventKind`` or raise ``ValidationError``."""
    try:
        return EventKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown event kind: {kind!r}", details={"kind": str(kind)}) from None


def validate_payload(
    kind: Union[EventKind, str],
    payload: Union[Mapping[str, Any], EventPayload, None],
) -> Tuple[EventKind, Dict[str, Any]]:
    """
    Validate a payload against the model registered for ``kind``.

    Args:
        kind: Event kind, as enum or its string value.
        payload: Mapping or payload model instance; ``None`` means empty.

    Returns:
        The parsed kind and the JSON-ready payload dict. Fields the producer did
        not send and explicit ``None`` values are dropped; defaults are not
        filled in.

    Raises:
        ValidationError: unknown kind, wrong payload model, or invalid fields.
    """
    kind_enum = parse_kind(kind)
    model = PAYLOAD_SCHEMAS[kind_enum]

    if payload is None:
        data: Dict[str, Any] = {}
    elif isinstance(payload, EventPayload):
        if not isinstance(payload, model):
            raise ValidationError(
                f"Payload {type(payload).__name__} does not match kind {kind_enum.value}",
                details={"kind": kind_enum.value, "expected": model.__name__},
            )
        data = payload.model_dump(exclude_unset=True)
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValidationError(
            f"Payload for {kind_enum.value} must be a mapping, got {type(payload).__name__}",
            details={"kind": kind_enum.value},
        )

    try:
        parsed = model.model_validate(data)
        return kind_enum, parsed.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid payload for {kind_enum.value}: {e.error_count()} error(s)",
            details={"kind": kind_enum.value, "errors": e.errors(include_url=False)},
        ) from e
    except PydanticSerializationError as e:
        raise ValidationError(
            f"Payload for {kind_enum.value} is not JSON serializable",
            details={"kind": kind_enum.value},
        ) from e


class _Missing(dict):
    def __missing__(self, key: str) -> str:
        return "?"


def _fmt(template: str) -> Callable[[Dict[str, Any]], str]:
    def render(p: Dict[str, Any]) -> str:
        return template.format_map(_Missing(p))

    return render


_DESCRIPTIONS: Dict[EventKind, Callable[[Dict[str, Any]], str]] = {
    EventKind.session_registered: _fmt("Session registered for {project}"),
    EventKind.work_planned: _fmt("Planned {work_item_id}"),
    EventKind.work_started: _fmt("Started {work_item_id}"),
    EventKind.work_completed: _fmt("Completed {work_item_id}"),
    EventKind.work_failed: _fmt("Failed {work_item_id}: {reason}"),
    EventKind.test_passed: _fmt("Tests passed: {passed}"),
    EventKind.test_failed: _fmt("Tests failed: {failed}"),
    EventKind.validation_passed: _fmt("Validation passed: {check}"),
    EventKind.validation_failed: _fmt("Validation failed: {check}"),
    EventKind.commit_created: _fmt("Commit {sha}"),
    EventKind.pr_created: _fmt("Opened PR #{pr_number}"),
    EventKind.pr_merged: _fmt("Merged PR #{pr_number}"),
    EventKind.deployment_started: _fmt("Deploying to {environment}"),
    EventKind.deployment_completed: _fmt("Deployed to {environment}"),
    EventKind.deployment_failed: _fmt("Deployment to {environment} failed: {reason}"),
    EventKind.context_updated: _fmt("Context at {context_percent}%"),
    EventKind.checkpoint_created: _fmt("Checkpoint {checkpoint_id}"),
    EventKind.checkpoint_loaded: _fmt("Loaded checkpoint {checkpoint_id}"),
    EventKind.feature_requested: _fmt("Feature requested: {description}"),
    EventKind.task_spawned: _fmt("Spawned task {task_id}"),
    EventKind.spawn_decided: _fmt("Spawn decision for {task_id}: {decision}"),
    EventKind.tool_invoked: _fmt("Tool {tool_name}"),
    EventKind.tool_result: _fmt("Tool {tool_name} returned"),
    EventKind.error: _fmt("Error: {message}"),
}


def describe_event(event: Event) -> str:
    """One-line human summary of an event."""
    if isinstance(event.kind, EventKind) and event.kind in _DESCRIPTIONS:
        text = _DESCRIPTIONS[event.kind](event.payload)
    else:
        text = str(getattr(event.kind, "value", event.kind))
    if event.success is False and event.error:
        text = f"{text} (error: {event.error})"
    return text
