# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Wall-clock epoch milliseconds, used to stamp progress events."""
    return int(time.time() * 1000)


# === REQUEST ===


class GenerationRequest(BaseModel):
    """Input to one pipeline run. Immutable once accepted."""

    model_config = ConfigDict(frozen=True)

    source_image_1: str
    source_image_2: str
    name_1: str
    name_2: str
    target_name: str
    correlation_id: str = Field(default_factory=_new_id)
    source_id_1: int | None = None
    source_id_2: int | None = None

    @field_validator("source_image_1", "source_image_2", "name_1", "name_2", "target_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


# === STAGES ===


class StageStatus(str, Enum):
    """Outcome of a single stage attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class StageArtifact(BaseModel):
    """Value flowing from one stage into the next."""

    image_url: str | None = None
    text: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.image_url and not self.text


class StageResult(BaseModel):
    """Outcome of one stage of a pipeline run."""

    stage: str
    status: StageStatus
    output: StageArtifact | None = None
    error: str | None = None
    duration_ms: int = 0
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.SUCCEEDED


# === OUTCOME ===


class PipelineOutcome(BaseModel):
    """Terminal result of a full run. final_artifact is never empty."""

    final_artifact: str
    is_fallback: bool
    stage_results: list[StageResult] = Field(default_factory=list)
    correlation_id: str = ""
    record_id: str | None = None
    saved: bool = False
    debited: bool = False
    message: str | None = None

    @field_validator("final_artifact")
    @classmethod
    def _artifact_required(cls, v: str) -> str:
        if not v:
            raise ValueError("final_artifact must not be empty")
        return v

    def to_event_data(self, target_name: str | None = None) -> dict[str, Any]:
        """Payload of the terminal progress event."""
        data: dict[str, Any] = {
            "finalUrl": self.final_artifact,
            "fusionId": self.record_id,
            "isLocalFallback": self.is_fallback,
            "saved": self.saved,
        }
        if target_name is not None:
            data["fusionName"] = target_name
        if self.message:
            data["message"] = self.message
        return data


# === CREDITS ===

LedgerReason = Literal["usage", "refund", "grant", "purchase"]


class CreditLedgerEntry(BaseModel):
    """One append-only debit/credit row tied to a user."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=_new_id)
    user_id: str
    amount: int
    reason: LedgerReason
    description: str = ""
    reference_id: str | None = None
    created_at: datetime = Field(default_factory=_now)

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


# === GALLERY ===


class FusionRecord(BaseModel):
    """Persisted gallery row for a finished run."""

    record_id: str = Field(default_factory=_new_id)
    user_id: str
    name_1: str
    name_2: str
    target_name: str
    image_url: str
    is_fallback: bool = False
    correlation_id: str = ""
    source_id_1: int | None = None
    source_id_2: int | None = None
    created_at: datetime = Field(default_factory=_now)

    @classmethod
    def from_outcome(
        cls, request: GenerationRequest, user_id: str, outcome: PipelineOutcome,
    ) -> FusionRecord:
        # Fallback runs are shown under the first source's name
        target = request.name_1 if outcome.is_fallback else request.target_name
        return cls(
            user_id=user_id,
            name_1=request.name_1,
            name_2=request.name_2,
            target_name=target,
            image_url=outcome.final_artifact,
            is_fallback=outcome.is_fallback,
            correlation_id=request.correlation_id,
            source_id_1=request.source_id_1,
            source_id_2=request.source_id_2,
        )


# === PROGRESS ===

EventStatus = Literal["started", "succeeded", "failed", "timed_out", "completed"]

TERMINAL_STAGE = "pipeline"


class ProgressEvent(BaseModel):
    """One stage transition delivered to a progress subscriber."""

    stage: str
    status: EventStatus
    data: dict[str, Any] | None = None
    error: str | None = None
    timestamp: int = Field(default_factory=now_ms)
    sequence: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.stage == TERMINAL_STAGE and self.status == "completed"


# === DESCRIPTION ===


class DescriptionFields(BaseModel):
    """Structured fields extracted from a free-text fusion description."""

    body_structure: str = "unknown body structure"
    color_palette: str = "vibrant colors"
    key_features: str = "distinctive features"
    texture_and_surface: str = "smooth surface"
    species_influence: str = "unique creature type"
    attitude_and_expression: str = "neutral expression"
    notable_accessories: str = "no distinctive markings"
