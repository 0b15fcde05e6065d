# src/api/models.py — v1
"""HTTP-level models: request bodies and JSON responses.

Field names follow the web client's camelCase wire format; snake_case names
are accepted too.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pokefusion.core.models import FusionRecord, GenerationRequest, PipelineOutcome, ProgressEvent


class FusionRequestBody(BaseModel):
    """Body of the generate endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    pokemon_1_name: str = Field(alias="pokemon1Name")
    pokemon_2_name: str = Field(alias="pokemon2Name")
    pokemon_1_image_url: str = Field(alias="pokemon1ImageUrl")
    pokemon_2_image_url: str = Field(alias="pokemon2ImageUrl")
    fusion_name: str = Field(alias="fusionName")
    pokemon_1_id: int | None = Field(default=None, alias="pokemon1Id")
    pokemon_2_id: int | None = Field(default=None, alias="pokemon2Id")

    def to_generation_request(self) -> GenerationRequest:
        """Validate into the core request (raises pydantic ValidationError)."""
        return GenerationRequest(
            source_image_1=self.pokemon_1_image_url,
            source_image_2=self.pokemon_2_image_url,
            name_1=self.pokemon_1_name,
            name_2=self.pokemon_2_name,
            target_name=self.fusion_name,
            source_id_1=self.pokemon_1_id,
            source_id_2=self.pokemon_2_id,
        )


class GenerateResponse(BaseModel):
    """Blocking generate result."""

    correlation_id: str = Field(serialization_alias="correlationId")
    final_url: str = Field(serialization_alias="finalUrl")
    fusion_id: str | None = Field(default=None, serialization_alias="fusionId")
    fusion_name: str = Field(serialization_alias="fusionName")
    is_local_fallback: bool = Field(serialization_alias="isLocalFallback")
    saved: bool
    message: str | None = None
    stages: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: PipelineOutcome, request: GenerationRequest) -> GenerateResponse:
        return cls(
            correlation_id=outcome.correlation_id,
            final_url=outcome.final_artifact,
            fusion_id=outcome.record_id,
            fusion_name=request.name_1 if outcome.is_fallback else request.target_name,
            is_local_fallback=outcome.is_fallback,
            saved=outcome.saved,
            message=outcome.message,
            stages=[
                {
                    "stage": r.stage,
                    "status": r.status.value,
                    "durationMs": r.duration_ms,
                    "attempts": r.attempts,
                    "error": r.error,
                }
                for r in outcome.stage_results
            ],
        )


class StartResponse(BaseModel):
    """Returned by the background start endpoint."""

    correlation_id: str = Field(serialization_alias="correlationId")
    poll_url: str = Field(serialization_alias="pollUrl")


class PollResponse(BaseModel):
    """One page of a polled run's event transcript."""

    correlation_id: str = Field(serialization_alias="correlationId")
    events: list[ProgressEvent]
    next_cursor: int = Field(serialization_alias="nextCursor")
    done: bool
    outcome: dict[str, Any] | None = None


class BalanceResponse(BaseModel):
    balance: int


class RefundBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    correlation_id: str = Field(alias="correlationId")


class FusionListResponse(BaseModel):
    fusions: list[FusionRecord]
