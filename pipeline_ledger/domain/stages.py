"""Pipeline stage names, labels and stage-name validation.

Pure domain logic with no external dependencies.
"""
import re
from enum import Enum

from pipeline_ledger.core.exceptions import ValidationError

MAX_STAGE_NAME_LENGTH = 50
MAX_ACTOR_LENGTH = 255

_ENTITY_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class PipelineStage(str, Enum):
    """Client project pipeline, in business order."""

    QUALIFIE = "qualifie"
    PRISE_DE_BESOIN = "prise_de_besoin"
    ACOMPTE_RECU = "acompte_recu"
    CONCEPTION = "conception"
    DEVIS_NEGOCIATION = "devis_negociation"
    ACCEPTE = "accepte"
    REFUSE = "refuse"
    PREMIER_DEPOT = "premier_depot"
    PROJET_EN_COURS = "projet_en_cours"
    CHANTIER = "chantier"
    FACTURE_REGLEE = "facture_reglee"
    LIVRAISON_TERMINE = "livraison_termine"


# Statuses still present on older client records
LEGACY_STAGES = frozenset({
    "prospection",
    "nouveau",
    "acompte_verse",
    "en_conception",
    "en_validation",
    "en_chantier",
    "livraison",
    "termine",
    "annule",
    "suspendu",
})

# Terminal by convention only; transitions out of them are still allowed
TERMINAL_STAGES = frozenset({"livraison_termine", "refuse", "termine", "annule"})

STAGE_LABELS: dict[str, str] = {
    "qualifie": "Qualifié",
    "prise_de_besoin": "Prise de besoin",
    "acompte_recu": "Acompte reçu",
    "conception": "Conception",
    "devis_negociation": "Devis/Négociation",
    "accepte": "Accepté",
    "refuse": "Refusé",
    "premier_depot": "1er Dépôt",
    "projet_en_cours": "Projet en cours",
    "chantier": "Chantier",
    "facture_reglee": "Facture réglée",
    "livraison_termine": "Livraison & Terminé",
    "prospection": "Prospection",
    "nouveau": "Nouveau",
    "acompte_verse": "Acompte versé",
    "en_conception": "En conception",
    "en_validation": "En validation",
    "en_chantier": "En chantier",
    "livraison": "Livraison",
    "termine": "Terminé",
    "annule": "Annulé",
    "suspendu": "Suspendu",
}

_PIPELINE_ORDER = {stage.value: index for index, stage in enumerate(PipelineStage)}


def stage_order(stage_name: str) -> int | None:
    """Position of a stage in the pipeline, None for legacy or custom names."""
    return _PIPELINE_ORDER.get(stage_name)


def is_known_stage(stage_name: str) -> bool:
    return stage_name in _PIPELINE_ORDER or stage_name in LEGACY_STAGES


def is_terminal_stage(stage_name: str) -> bool:
    return stage_name in TERMINAL_STAGES


def stage_label(stage_name: str | None) -> str:
    """French display label; unknown names are returned unchanged."""
    if not stage_name:
        return ""
    return STAGE_LABELS.get(stage_name, stage_name)


def validate_stage_name(stage_name: str | None, strict: bool = False) -> str:
    """Normalize and validate a stage name.

    Args:
        stage_name: Raw stage name from the caller
        strict: Reject names outside the pipeline and legacy statuses

    Returns:
        The stripped stage name

    Raises:
        ValidationError: empty, oversized, or (when strict) unknown name
    """
    name = (stage_name or "").strip()
    if not name:
        raise ValidationError("newStage is required")
    if len(name) > MAX_STAGE_NAME_LENGTH:
        raise ValidationError(f"Stage name exceeds {MAX_STAGE_NAME_LENGTH} characters")
    if strict and not is_known_stage(name):
        raise ValidationError(f"Unknown stage '{name}'")
    return name


def validate_actor(actor: str | None) -> str:
    actor = (actor or "").strip()
    if not actor:
        raise ValidationError("changedBy is required")
    if len(actor) > MAX_ACTOR_LENGTH:
        raise ValidationError(f"changedBy exceeds {MAX_ACTOR_LENGTH} characters")
    return actor


def validate_entity_id(entity_id: str | None) -> str:
    entity_id = (entity_id or "").strip()
    if not _ENTITY_ID_RE.match(entity_id):
        raise ValidationError(f"Invalid entity id '{entity_id}'")
    return entity_id
