# src/pipeline/fallback.py — v1
"""Fallback resolver — every run ends with a usable artifact.

If the stage chain did not complete, the first source image stands in for
the fusion. Availability over fidelity: the user always gets a picture.
"""

from __future__ import annotations

import logging

from pokefusion.core.models import GenerationRequest, PipelineOutcome, StageResult

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Using Simple Method: {reason}"


def _failure_reason(stage_results: list[StageResult]) -> str:
    for result in stage_results:
        if not result.succeeded:
            return f"stage '{result.stage}' {result.status.value}"
    if not stage_results:
        return "no generation stages ran"
    return "final stage produced no new image"


def _is_new_image(request: GenerationRequest, image_url: str | None) -> bool:
    return bool(image_url) and image_url not in (request.source_image_1, request.source_image_2)


def resolve(request: GenerationRequest, stage_results: list[StageResult]) -> PipelineOutcome:
    """Turn the stage transcript into a terminal outcome. Never raises."""
    try:
        last = stage_results[-1] if stage_results else None
        all_ok = bool(stage_results) and all(r.succeeded for r in stage_results)
        if all_ok and last is not None and last.output is not None and _is_new_image(
            request, last.output.image_url,
        ):
            return PipelineOutcome(
                final_artifact=last.output.image_url,
                is_fallback=False,
                stage_results=list(stage_results),
                correlation_id=request.correlation_id,
            )
        reason = _failure_reason(stage_results)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Fallback resolution hit an unexpected error")
        reason = f"internal error ({type(exc).__name__})"

    logger.info("Falling back to first source image: %s", reason)
    return PipelineOutcome(
        final_artifact=request.source_image_1,
        is_fallback=True,
        stage_results=list(stage_results),
        correlation_id=request.correlation_id,
        message=FALLBACK_MESSAGE.format(reason=reason),
    )
