"""
Resilient Stream Orchestrator
=============================
Starts a generation stream on the primary backend and, if that fails to
start, replays the same request against backup backends in order.

Attempt Sequence (strictly sequential, never concurrent):
    Trying(0 = primary) → Succeeded | Trying(1)
    Trying(i)           → Succeeded | Trying(i + 1) | ExhaustedFailed

Observer Contract:
    options.on_error is called once per failed attempt: once for the
    primary, and once for each backup that fails (through a wrapper
    that logs and re-invokes the original observer). Attempts skipped
    because an earlier one succeeded are never reported.

Failure Attribution:
    When every backend fails, the PRIMARY's exception is re-raised, not
    the last backup's. The caller's failure message stays tied to the
    model the user actually picked.

Retry Scope:
    Only failure to START a stream triggers failover. A stream that
    starts and then breaks is the consumer's problem.
"""
import inspect
import logging
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple, Union

from fixloop.core.errors import StreamAttemptFailure
from fixloop.llm.backends import Backend
from fixloop.llm.client import (
    ErrorObserver,
    StreamErrorEvent,
    StreamHandle,
    StreamOptions,
    start_text_stream,
)

logger = logging.getLogger(__name__)

StartStream = Callable[[StreamOptions], Union[StreamHandle, Awaitable[StreamHandle]]]


def _wrap_backup_observer(
    original: Optional[ErrorObserver], backup_number: int, backend_name: str,
) -> ErrorObserver:
    """Observer for a backup attempt: log, then forward to the caller's."""
    def on_backup_error(event: StreamErrorEvent) -> None:
        logger.error("Error with backup model #%d (%s): %s", backup_number, backend_name, event.error)
        if original is not None:
            original(event)
    return on_backup_error


def _attempt_plan(
    options: StreamOptions, backup_backends: Sequence[Backend],
) -> Iterator[Tuple[str, StreamOptions]]:
    yield "primary model", options
    for number, backend in enumerate(backup_backends, 1):
        observer = _wrap_backup_observer(options.on_error, number, backend.name)
        yield f"backup model #{number}", options.with_backend(backend, on_error=observer)


async def _start(start_stream: StartStream, options: StreamOptions) -> StreamHandle:
    # Sync raise and async failure of start_stream look the same from here
    result = start_stream(options)
    if inspect.isawaitable(result):
        result = await result
    return result


async def stream_with_failover(
    options: StreamOptions,
    backup_backends: Sequence[Backend] = (),
    start_stream: StartStream = start_text_stream,
) -> StreamHandle:
    """
    Start a stream on the primary backend, failing over to backups.

    Parameters
    ----------
    options : StreamOptions
        The request, bound to the primary backend, with the caller's
        on_error observer.
    backup_backends : sequence of Backend
        Tried in order, each at most once, only after the primary fails.
    start_stream : callable
        Generation API; returns a handle (or an awaitable of one) or raises.

    Returns
    -------
    StreamHandle
        The first stream any backend accepted; ``handle.backend`` names it.

    Raises
    ------
    Exception
        The primary backend's own error, when every attempt failed.
    """
    failures: List[StreamAttemptFailure] = []
    primary_error: Optional[Exception] = None

    for label, attempt_options in _attempt_plan(options, backup_backends):
        backend_name = attempt_options.backend.name
        logger.info("Attempting to stream with %s (%s)", label, backend_name)
        try:
            handle = await _start(start_stream, attempt_options)
        except Exception as e:
            is_primary = primary_error is None
            if is_primary:
                primary_error = e
            failures.append(StreamAttemptFailure(backend_name, e, is_primary=is_primary))
            logger.error("Failed with %s (%s): %s", label, backend_name, e)
            if attempt_options.on_error is not None:
                attempt_options.on_error(StreamErrorEvent(error=e, backend_name=backend_name))
            continue

        if failures:
            logger.info("Streaming with %s (%s) after %d failed attempt(s)", label, backend_name, len(failures))
        return handle

    logger.error(
        "All %d model(s) failed; reporting primary error. Attempts: %s",
        len(failures), "; ".join(f.describe() for f in failures),
    )
    raise primary_error
