"""
Job handlers registry and implementations.

Handlers receive a JobContext and return the job result. Raising fails
the job; the error message is stored on the row. Handlers should be
idempotent, since a job may be reclaimed and run again after a worker
crash.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from jobqueue.types.job import JobContext, JobPayload, JobRecord

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[JobContext], Awaitable[Any]]

# Handler registry
_handlers: dict[str, JobHandler] = {}


class UnknownJobTypeError(LookupError):
    """Raised when a payload names a job type with no handler."""


class InvalidPayloadError(ValueError):
    """Raised when a payload is not a valid JobPayload document."""


def register_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """
    Decorator to register a job handler.

    Args:
        job_type: The job type this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("send_email")
        async def handle_send_email(context: JobContext) -> dict:
            ...
    """
    def decorator(handler: JobHandler) -> JobHandler:
        _handlers[job_type] = handler
        logger.debug(f"Registered handler for job type: {job_type}")
        return handler
    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    """
    Get the handler for a job type.

    Args:
        job_type: The job type.

    Returns:
        The handler function or None if not found.
    """
    return _handlers.get(job_type)


def list_handlers() -> list[str]:
    """List all registered job types."""
    return list(_handlers.keys())


# ============================================================================
# Built-in job handlers
# ============================================================================


@register_handler("echo")
async def handle_echo(context: JobContext) -> dict[str, Any]:
    """
    Echo handler for testing.

    Simply returns the input data as output.
    """
    logger.info("Echo job executing", extra={"job_id": context.job_id})
    return {"echo": context.data}


@register_handler("sleep")
async def handle_sleep(context: JobContext) -> dict[str, Any]:
    """
    Sleep handler for testing delays.

    Data should contain:
    - duration_seconds: How long to sleep
    """
    duration = context.data.get("duration_seconds", 1)

    logger.info(
        "Sleep job starting",
        extra={"job_id": context.job_id, "duration": duration}
    )

    await asyncio.sleep(duration)

    return {"slept_for": duration}


@register_handler("failing_job")
async def handle_failing_job(context: JobContext) -> None:
    """
    Handler that always fails - for testing retry logic.
    """
    raise RuntimeError(f"Intentional failure after {context.retry_count} retries")


def build_context(job: JobRecord) -> JobContext:
    """
    Parse a claimed job's payload into a handler context.

    Raises:
        InvalidPayloadError: If the payload is not a JobPayload document.
    """
    try:
        payload = JobPayload.model_validate_json(job.payload)
    except ValidationError as e:
        raise InvalidPayloadError(f"Invalid job payload: {e.error_count()} error(s)") from e

    return JobContext(
        job_id=job.id,
        job_type=payload.job_type,
        data=payload.data,
        retry_count=job.retry_count,
        lock_token=job.locked_by or "",
        metadata=payload.metadata or {},
    )


async def execute_job(job: JobRecord) -> Any:
    """
    Execute a claimed job using the handler for its job type.

    Used as the run_next callback by the worker.

    Args:
        job: The claimed job.

    Returns:
        The handler's result.

    Raises:
        InvalidPayloadError: If the payload cannot be parsed.
        UnknownJobTypeError: If no handler is registered for the job type.
    """
    context = build_context(job)

    handler = get_handler(context.job_type)
    if handler is None:
        logger.error(
            f"No handler for job type: {context.job_type}",
            extra={"job_id": job.id}
        )
        raise UnknownJobTypeError(f"No handler registered for job type: {context.job_type}")

    return await handler(context)
