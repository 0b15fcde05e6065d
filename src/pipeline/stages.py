# src/pipeline/stages.py — v1
"""Build the ordered stage plan for one request.

Stage kinds:
  blend     two source images -> rough hybrid image
  describe  hybrid image -> free-text description + parsed fields
  enhance   hybrid image + fields -> polished image
  fuse      single-call alternative to the three above
"""

from __future__ import annotations

import logging

from pokefusion.core.models import DescriptionFields, GenerationRequest, StageArtifact
from pokefusion.pipeline.config import PipelineConfig, StageConfig
from pokefusion.pipeline.stage_runner import Stage, StageFn
from pokefusion.providers.base import classify_provider_error
from pokefusion.providers.description_parser import parse_description
from pokefusion.providers.provider_factory import ProviderSet

logger = logging.getLogger(__name__)


class StagePlanError(ValueError):
    """A configured stage has no provider to back it."""


def _blend_fn(providers: ProviderSet, request: GenerationRequest) -> StageFn:
    assert providers.blend is not None
    blend = providers.blend

    async def run(_: StageArtifact) -> StageArtifact:
        url = await blend.blend(
            request.source_image_1, request.source_image_2, request.name_1, request.name_2,
        )
        return StageArtifact(image_url=url)

    return run


def _describe_fn(providers: ProviderSet, request: GenerationRequest) -> StageFn:
    assert providers.describe is not None
    describe = providers.describe

    async def run(previous: StageArtifact) -> StageArtifact:
        image = previous.image_url or request.source_image_1
        text = await describe.describe(image, request.name_1, request.name_2)
        fields = parse_description(text)
        return StageArtifact(image_url=image, text=text, fields=fields.model_dump())

    return run


def _enhance_fn(providers: ProviderSet, request: GenerationRequest) -> StageFn:
    assert providers.enhance is not None
    enhance = providers.enhance

    async def run(previous: StageArtifact) -> StageArtifact:
        image = previous.image_url or request.source_image_1
        fields = DescriptionFields(**previous.fields) if previous.fields else DescriptionFields()
        url = await enhance.enhance(image, fields)
        return StageArtifact(image_url=url, text=previous.text, fields=previous.fields)

    return run


def _fuse_fn(providers: ProviderSet, request: GenerationRequest) -> StageFn:
    assert providers.fuse is not None
    fuse = providers.fuse

    async def run(_: StageArtifact) -> StageArtifact:
        url = await fuse.fuse(
            request.source_image_1,
            request.source_image_2,
            request.name_1,
            request.name_2,
            request.target_name,
        )
        return StageArtifact(image_url=url)

    return run


_BUILDERS = {
    "blend": _blend_fn,
    "describe": _describe_fn,
    "enhance": _enhance_fn,
    "fuse": _fuse_fn,
}


def check_plan(config: PipelineConfig, providers: ProviderSet) -> None:
    """Fail fast when a configured stage cannot run.

    Raises:
        StagePlanError: On unknown stage names or missing providers.
    """
    for stage in config.stages:
        if stage.name not in _BUILDERS:
            raise StagePlanError(f"Unknown stage '{stage.name}'")
        if getattr(providers, stage.name) is None:
            raise StagePlanError(f"Stage '{stage.name}' is enabled but has no provider")


def _to_stage(cfg: StageConfig, providers: ProviderSet, request: GenerationRequest) -> Stage:
    return Stage(
        name=cfg.name,
        fn=_BUILDERS[cfg.name](providers, request),
        timeout_s=cfg.timeout_s,
        max_retries=cfg.max_retries,
        base_delay_s=cfg.base_delay_s,
        is_retryable=classify_provider_error,
    )


def build_stages(
    config: PipelineConfig, providers: ProviderSet, request: GenerationRequest,
) -> list[Stage]:
    """Bind providers and the request into runnable stages, in config order."""
    check_plan(config, providers)
    return [_to_stage(cfg, providers, request) for cfg in config.stages]


def initial_artifact(request: GenerationRequest) -> StageArtifact:
    """Input of the first stage: the first source image."""
    return StageArtifact(image_url=request.source_image_1)
