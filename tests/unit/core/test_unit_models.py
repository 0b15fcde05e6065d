# tests/unit/core/test_unit_models.py — v1
"""Tests for core/models.py — domain model validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pokefusion.core.models import (
    CreditLedgerEntry,
    FusionRecord,
    GenerationRequest,
    PipelineOutcome,
    ProgressEvent,
    StageArtifact,
    StageResult,
    StageStatus,
)


class TestGenerationRequest:
    def test_correlation_id_generated(self):
        a = GenerationRequest(source_image_1="a", source_image_2="b", name_1="A", name_2="B", target_name="AB")
        b = GenerationRequest(source_image_1="a", source_image_2="b", name_1="A", name_2="B", target_name="AB")
        assert a.correlation_id and a.correlation_id != b.correlation_id

    @pytest.mark.parametrize("field", ["source_image_1", "source_image_2", "name_1", "name_2", "target_name"])
    def test_blank_fields_rejected(self, field):
        data = dict(source_image_1="a", source_image_2="b", name_1="A", name_2="B", target_name="AB")
        data[field] = "  "
        with pytest.raises(ValidationError):
            GenerationRequest(**data)

    def test_frozen(self, sample_request):
        with pytest.raises(ValidationError):
            sample_request.name_1 = "Mew"


class TestStageModels:
    def test_artifact_emptiness(self):
        assert StageArtifact().is_empty
        assert not StageArtifact(text="desc").is_empty

    def test_result_succeeded(self):
        assert StageResult(stage="a", status=StageStatus.SUCCEEDED).succeeded
        assert not StageResult(stage="a", status=StageStatus.TIMED_OUT).succeeded


class TestPipelineOutcome:
    def test_artifact_required(self):
        with pytest.raises(ValidationError):
            PipelineOutcome(final_artifact="", is_fallback=True)

    def test_event_data(self):
        outcome = PipelineOutcome(
            final_artifact="https://x/f.png", is_fallback=True, record_id="r1",
            saved=True, message="Using Simple Method: stage 'blend' failed",
        )
        data = outcome.to_event_data("Pikamander")
        assert data == {
            "finalUrl": "https://x/f.png",
            "fusionId": "r1",
            "isLocalFallback": True,
            "saved": True,
            "fusionName": "Pikamander",
            "message": "Using Simple Method: stage 'blend' failed",
        }


class TestLedgerAndRecords:
    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError):
            CreditLedgerEntry(user_id="u1", amount=0, reason="grant")

    def test_unknown_reason_rejected(self):
        with pytest.raises(ValidationError):
            CreditLedgerEntry(user_id="u1", amount=1, reason="gift")

    def test_record_from_success(self, sample_request):
        outcome = PipelineOutcome(final_artifact="https://x/f.png", is_fallback=False)
        record = FusionRecord.from_outcome(sample_request, "u1", outcome)
        assert record.target_name == "Pikamander"
        assert record.correlation_id == "corr-001"

    def test_record_from_fallback_uses_first_name(self, sample_request):
        outcome = PipelineOutcome(final_artifact=sample_request.source_image_1, is_fallback=True)
        record = FusionRecord.from_outcome(sample_request, "u1", outcome)
        assert record.target_name == "Pikachu"
        assert record.is_fallback


class TestProgressEvent:
    def test_terminal_detection(self):
        assert ProgressEvent(stage="pipeline", status="completed").is_terminal
        assert not ProgressEvent(stage="blend", status="succeeded").is_terminal

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            ProgressEvent(stage="blend", status="exploded")
