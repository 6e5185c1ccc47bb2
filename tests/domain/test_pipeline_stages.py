"""Tests for pipeline stage names and input validation."""
import pytest

from pipeline_ledger.core.exceptions import ValidationError
from pipeline_ledger.domain.stages import (
    PipelineStage,
    is_known_stage,
    is_terminal_stage,
    stage_label,
    stage_order,
    validate_actor,
    validate_entity_id,
    validate_stage_name,
)

pytestmark = pytest.mark.unit


class TestPipelineStage:
    def test_pipeline_order(self):
        """Stages are ordered as the business pipeline."""
        assert stage_order("qualifie") == 0
        assert stage_order("conception") < stage_order("devis_negociation")
        assert stage_order("livraison_termine") == len(PipelineStage) - 1

    def test_legacy_and_custom_stages_have_no_order(self):
        assert stage_order("en_chantier") is None
        assert stage_order("custom_stage") is None

    def test_known_stages_include_legacy(self):
        assert is_known_stage("conception")
        assert is_known_stage("annule")
        assert not is_known_stage("custom_stage")

    def test_terminal_stages(self):
        assert is_terminal_stage("livraison_termine")
        assert is_terminal_stage("annule")
        assert not is_terminal_stage("chantier")


class TestStageLabel:
    def test_known_label(self):
        assert stage_label("acompte_recu") == "Acompte reçu"

    def test_unknown_label_passthrough(self):
        assert stage_label("custom_stage") == "custom_stage"

    def test_none_label(self):
        assert stage_label(None) == ""


class TestValidateStageName:
    def test_strips_whitespace(self):
        assert validate_stage_name("  conception ") == "conception"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_stage_name(value)

    def test_oversized_rejected(self):
        with pytest.raises(ValidationError):
            validate_stage_name("x" * 51)

    def test_permissive_accepts_custom_names(self):
        assert validate_stage_name("custom_stage") == "custom_stage"

    def test_strict_rejects_unknown(self):
        with pytest.raises(ValidationError, match="Unknown stage"):
            validate_stage_name("custom_stage", strict=True)

    def test_strict_accepts_legacy(self):
        assert validate_stage_name("suspendu", strict=True) == "suspendu"


class TestValidateInputs:
    def test_actor_required(self):
        with pytest.raises(ValidationError, match="changedBy"):
            validate_actor("  ")

    @pytest.mark.parametrize("value", ["client-issam-tester-2025", "ckx1a2b3c-ckz9y8x7w", "42"])
    def test_entity_id_accepted(self, value):
        assert validate_entity_id(value) == value

    @pytest.mark.parametrize("value", ["", "has space", "a/b", "x" * 65, None])
    def test_entity_id_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_entity_id(value)
