"""Structured NLU output schema (Pydantic models).

These models are the contract between the protocol parser and the dialogue manager. They are
frozen: a parse call builds fresh instances and nothing revises them afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from src.nlu import slots


def freeze_meta(value: Any) -> Any:
    """Return a read-only copy of decoded JSON (objects become mapping proxies, arrays tuples)."""

    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_meta(item) for key, item in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze_meta(item) for item in value)
    return value


def thaw_meta(value: Any) -> Any:
    """Inverse of `freeze_meta`: plain dicts and lists, for serialization."""

    if isinstance(value, Mapping):
        return {key: thaw_meta(item) for key, item in value.items()}
    if isinstance(value, tuple | list):
        return [thaw_meta(item) for item in value]
    return value


# Caller-defined metadata; stored read-only, dumped as a plain JSON object.
Meta = Annotated[
    Mapping[str, Any],
    AfterValidator(freeze_meta),
    PlainSerializer(thaw_meta),
]


class EntitySpan(BaseModel):
    """One extracted slot value and its claimed location in the user message.

    Offsets and confidence are copied verbatim from the model output. They are not checked
    against the message length, and `start <= end` is not enforced.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    raw: str
    start: int
    end: int
    confidence: float


class EntityOutput(BaseModel):
    """Result of one parse in entity-extraction mode.

    `missing` holds the slots the model itself declared absent. It is advisory only; use
    `missing_keys()` for the authoritative answer.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    entities: tuple[EntitySpan, ...] = ()
    missing: tuple[str, ...] = ()
    language: str = ""

    def entities_by_type(self, entity_type: str) -> tuple[EntitySpan, ...]:
        """Return entities of `entity_type` in parse order (empty tuple when none)."""

        return slots.entities_by_type(self.entities, entity_type)

    def missing_keys(self, required: list[str] | tuple[str, ...]) -> tuple[str, ...]:
        """Recompute the missing keys for `required` from the extracted entities."""

        return slots.missing_keys(self.entities, required)


class IntentResult(BaseModel):
    """One classified intent candidate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    confidence: float
    priority: float
    meta: Meta = Field(default_factory=dict, validate_default=True)


class LanguageResult(BaseModel):
    """One detected language (ISO 639-3 code)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: str
    confidence: float
    primary_flag: int
    meta: Meta = Field(default_factory=dict, validate_default=True)


class IntentOutput(BaseModel):
    """Result of one parse in intent-classification mode."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    intents: tuple[IntentResult, ...] = ()
    languages: tuple[LanguageResult, ...] = ()

    def top_intent(self) -> IntentResult | None:
        """Return the candidate with the highest confidence (first wins on ties)."""

        best: IntentResult | None = None
        for candidate in self.intents:
            if best is None or candidate.confidence > best.confidence:
                best = candidate
        return best

    def primary_language(self) -> LanguageResult | None:
        """Return the first language flagged primary, if any."""

        for language in self.languages:
            if language.primary_flag == 1:
                return language
        return None
