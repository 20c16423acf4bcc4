"""Event lineage: payload registry, event log, replay reducer, parent propagation and emission."""

from .context import current_parent, detached, parent_scope, with_parent
from .emitter import EventEmitter
from .payloads import PAYLOAD_SCHEMAS, EventPayload, describe_event, validate_payload
from .replay import REDUCERS, ReplayResult, ReplayState, apply_event, reduce_events
from .store import EventStore

__all__ = [
    "EventEmitter",
    "EventPayload",
    "EventStore",
    "PAYLOAD_SCHEMAS",
    "REDUCERS",
    "ReplayResult",
    "ReplayState",
    "apply_event",
    "current_parent",
    "describe_event",
    "detached",
    "parent_scope",
    "reduce_events",
    "validate_payload",
    "with_parent",
]
