"""
Monitoring and Tracing Configuration Module.

Optional integration with Pydantic Logfire:
- SQLAlchemy statement tracing for the continuity store
- Structured records for resume outcomes and dropped event emissions

When Logfire is disabled (the default) every helper degrades to a plain log
record so callers never need to check whether monitoring is on.
"""

import logging
from typing import Any, Optional

import logfire
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Settings

logger = logging.getLogger(__name__)

_logfire_active = False


def initialize_logfire(settings: Settings, engine: Optional[AsyncEngine] = None) -> bool:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    Args:
        settings: Engine settings; ``LOGFIRE_ENABLED`` and ``LOGFIRE_TOKEN`` gate initialization.
        engine: Async engine to instrument (optional).

    Returns:
        True when Logfire was configured.
    """
    global _logfire_active

    cfg = settings.logfire
    if not cfg.enabled:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return False

    if not cfg.token:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return False

    try:
        logfire.configure(
            token=cfg.token,
            service_name=cfg.service_name,
            environment=cfg.environment,
        )
        if engine is not None:
            logfire.instrument_sqlalchemy(engine=engine.sync_engine)
            logger.info("Logfire: SQLAlchemy instrumentation enabled")
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}", exc_info=True)
        return False

    _logfire_active = True
    logger.info(f"Logfire monitoring initialized: environment={cfg.environment}, service={cfg.service_name}")
    return True


def shutdown_logfire() -> None:
    """Stop forwarding records to Logfire."""
    global _logfire_active
    _logfire_active = False


def is_logfire_active() -> bool:
    return _logfire_active


def log_resume_outcome(outcome: str, hint: Optional[str], **attributes: Any) -> None:
    """
    Record the outcome of a resume request.

    Args:
        outcome: ``resumed``, ``disambiguation`` or ``not_found``
        hint: The hint the caller supplied
        attributes: Extra attributes (session id, confidence, source, ...)
    """
    if _logfire_active:
        logfire.info("Resume {outcome}", outcome=outcome, hint=hint, **attributes)
    else:
        logger.info(f"Resume {outcome}: hint={hint!r} {attributes}")


def log_emission_failure(session_id: str, kind: str, error: BaseException) -> None:
    """
    Record an event emission that was dropped.

    Args:
        session_id: Session the event belonged to
        kind: Event kind
        error: The exception that prevented the append
    """
    if _logfire_active:
        logfire.warn(
            "Event emission dropped",
            session_id=session_id,
            kind=kind,
            error_type=type(error).__name__,
            error=str(error),
        )
    logger.warning(
        f"Event emission dropped: session={session_id} kind={kind} error={type(error).__name__}: {error}",
        exc_info=(type(error), error, error.__traceback__),
    )
