# src/pipeline/stage_runner.py — v1
"""Stage runner — execute an ordered list of provider stages.

Each stage is a single attempt (retries are composed around the stage
function beforehand) raced against a per-stage timeout. Stage errors are
never raised: they come back as failed/timed_out StageResults, and the
runner stops at the first one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pokefusion.core.models import ProgressEvent, StageArtifact, StageResult, StageStatus
from pokefusion.logging.context import set_stage_context
from pokefusion.pipeline.retry import RetryingCall, RetryPredicate, with_retry
from pokefusion.progress.base_channel import BaseProgressChannel

logger = logging.getLogger(__name__)

StageFn = Callable[[StageArtifact], Awaitable[Any]]


class EmptyStageOutput(Exception):
    """A provider answered but produced nothing usable."""


@dataclass
class Stage:
    """One named unit of work in the pipeline."""

    name: str
    fn: StageFn
    timeout_s: float
    max_retries: int = 0
    base_delay_s: float = 0.5
    is_retryable: RetryPredicate | None = None


def _coerce_output(output: Any) -> StageArtifact:
    """Normalize a stage return value; empty values count as failure."""
    if isinstance(output, str):
        output = StageArtifact(image_url=output) if output else None
    if output is None:
        raise EmptyStageOutput("provider returned no output")
    if not isinstance(output, StageArtifact):
        raise EmptyStageOutput(f"unexpected stage output type {type(output).__name__}")
    if output.is_empty:
        raise EmptyStageOutput("provider returned an empty artifact")
    return output


def _discard_result(task: asyncio.Future[Any]) -> None:
    """Swallow the late result of an abandoned call."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned stage call finished with %s: %s", type(exc).__name__, exc)


def _emit(channel: BaseProgressChannel | None, event: ProgressEvent) -> None:
    if channel is not None:
        channel.emit(event)


async def run_stage(
    name: str,
    fn: StageFn,
    stage_input: StageArtifact,
    timeout_s: float,
    channel: BaseProgressChannel | None = None,
) -> StageResult:
    """Run one stage under a timeout and report it on the channel.

    Emits ``started`` before the call and exactly one of
    ``succeeded | failed | timed_out`` after it. On timeout the in-flight
    call is abandoned (cancelled without being awaited) and its eventual
    result discarded.

    Raises:
        ValueError: If ``timeout_s`` is not positive.
    """
    if timeout_s <= 0:
        raise ValueError("timeout_s must be > 0")

    set_stage_context(name)
    _emit(channel, ProgressEvent(stage=name, status="started"))
    start = time.monotonic()

    task = asyncio.ensure_future(fn(stage_input))
    status = StageStatus.SUCCEEDED
    output: StageArtifact | None = None
    error: str | None = None

    try:
        raw = await asyncio.wait_for(asyncio.shield(task), timeout=timeout_s)
        output = _coerce_output(raw)
    except asyncio.CancelledError:
        task.cancel()
        set_stage_context(None)
        raise
    except asyncio.TimeoutError:
        if task.done() and not task.cancelled() and task.exception() is not None:
            # The call itself raised a TimeoutError before our deadline
            status = StageStatus.FAILED
            error = f"{type(task.exception()).__name__}: {task.exception()}"
        else:
            status = StageStatus.TIMED_OUT
            error = f"stage '{name}' exceeded {timeout_s:.1f}s"
            task.add_done_callback(_discard_result)
            task.cancel()
    except Exception as exc:
        status = StageStatus.FAILED
        error = f"{type(exc).__name__}: {exc}"

    duration_ms = int((time.monotonic() - start) * 1000)
    attempts = fn.last_attempts if isinstance(fn, RetryingCall) else 1

    result = StageResult(
        stage=name,
        status=status,
        output=output,
        error=error,
        duration_ms=duration_ms,
        attempts=max(attempts, 1),
    )

    if result.succeeded:
        logger.info("Stage '%s' succeeded in %dms (%d attempts)", name, duration_ms, result.attempts)
        data: dict[str, Any] = {"durationMs": duration_ms}
        if output is not None and output.image_url:
            data["imageUrl"] = output.image_url
        _emit(channel, ProgressEvent(stage=name, status="succeeded", data=data))
    else:
        logger.warning("Stage '%s' %s after %dms: %s", name, status.value, duration_ms, error)
        _emit(
            channel,
            ProgressEvent(
                stage=name,
                status=status.value,
                error=error,
                data={"durationMs": duration_ms},
            ),
        )

    set_stage_context(None)
    return result


class StageRunner:
    """Run stages strictly in order, short-circuiting on the first failure.

    Args:
        jitter: Apply jitter to retry backoff delays.
    """

    def __init__(self, jitter: bool = False) -> None:
        self._jitter = jitter

    async def run(
        self,
        stages: list[Stage],
        initial_input: StageArtifact,
        channel: BaseProgressChannel | None = None,
    ) -> list[StageResult]:
        """Execute all stages; each one receives the previous stage's output.

        Returns:
            StageResults in execution order. The last entry is the first
            non-succeeded result when the run short-circuited.
        """
        results: list[StageResult] = []
        current = initial_input

        for idx, stage in enumerate(stages):
            logger.debug("Stage %d/%d: %s", idx + 1, len(stages), stage.name)
            wrapped = with_retry(
                stage.fn,
                max_retries=stage.max_retries,
                base_delay_s=stage.base_delay_s,
                is_retryable=stage.is_retryable,
                jitter=self._jitter,
                label=stage.name,
            )
            result = await run_stage(stage.name, wrapped, current, stage.timeout_s, channel)
            results.append(result)

            if not result.succeeded:
                skipped = [s.name for s in stages[idx + 1:]]
                if skipped:
                    logger.info("Short-circuit after '%s'; skipping %s", stage.name, skipped)
                break

            assert result.output is not None
            current = result.output

        return results
