"""Slot-filling validation.

The validator decides which required slots are still unfilled. Its result is the authoritative
signal for business logic; the model's own `(missing ...)` records are only advisory and are
never substituted for it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.nlu.schema import EntityOutput, EntitySpan

# Strict: an entity at exactly this confidence does not fill its slot.
CONFIDENCE_THRESHOLD = 0.5


def is_satisfying(entity: EntitySpan) -> bool:
    """Whether `entity` counts as having filled the slot named by its type."""

    return entity.confidence > CONFIDENCE_THRESHOLD and entity.start >= 0


def satisfied_types(entities: Iterable[EntitySpan]) -> set[str]:
    """Return the set of entity types with at least one satisfying entity."""

    return {e.type for e in entities if is_satisfying(e)}


def missing_keys(entities: Iterable[EntitySpan], required: Sequence[str]) -> tuple[str, ...]:
    """Return the required keys that no satisfying entity covers, in the order of `required`."""

    found = satisfied_types(entities)
    return tuple(key for key in required if key not in found)


def entities_by_type(entities: Iterable[EntitySpan], entity_type: str) -> tuple[EntitySpan, ...]:
    """Return all entities of `entity_type` in their original parse order."""

    return tuple(e for e in entities if e.type == entity_type)


@dataclass(frozen=True)
class SlotCheck:
    """Computed missing slots alongside the model's self-reported ones."""

    missing: tuple[str, ...]
    self_reported: tuple[str, ...]
    # Self-reported as missing, but a satisfying entity exists.
    unconfirmed: tuple[str, ...]
    # Computed as missing, but the model did not report it.
    unreported: tuple[str, ...]

    @property
    def complete(self) -> bool:
        return not self.missing


def check_slots(output: EntityOutput, required: Sequence[str]) -> SlotCheck:
    """Compute missing slots for `required` and cross-check the model's own report.

    Only `SlotCheck.missing` should drive the dialogue; the other fields are for diagnostics.
    """

    missing = missing_keys(output.entities, required)
    missing_set = set(missing)
    self_reported_set = set(output.missing)
    required_set = set(required)

    return SlotCheck(
        missing=missing,
        self_reported=output.missing,
        unconfirmed=tuple(
            key for key in output.missing if key in required_set and key not in missing_set
        ),
        unreported=tuple(key for key in missing if key not in self_reported_set),
    )
