"""Delimiter protocol parser for model completions.

The prompts instruct the model to answer with records like::

    (entity<||>product<||>iPhone<||>10<||>15<||>0.92##(missing<||>brand##<|COMPLETE|>

Records are separated by `##`, fields by `<||>`, and `<|COMPLETE|>` marks the end of structured
content. The model is only *asked* to follow this format, so the parser never raises: malformed,
truncated or unknown records are dropped and the rest of the text is still used.

Two grammar variants exist and are selected by the entry point, never guessed from the text:
    - entity extraction: `(entity`, `(missing`, `(language` (code only)
    - intent classification: `(intent`, `(language` (code, confidence, primary flag, meta)
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from src.nlu.schema import EntityOutput, EntitySpan, IntentOutput, IntentResult, LanguageResult

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "##"
FIELD_SEPARATOR = "<||>"
COMPLETE_SENTINEL = "<|COMPLETE|>"

_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class EntityTag(StrEnum):
    """Record kinds of the entity-extraction grammar (matched by prefix)."""

    entity = "(entity"
    missing = "(missing"
    language = "(language"
    unrecognized = ""


class IntentTag(StrEnum):
    """Record kinds of the intent-classification grammar (matched exactly)."""

    intent = "(intent"
    language = "(language"
    unrecognized = ""


# Minimum field count per record kind, tag included.
_ENTITY_MIN_FIELDS: dict[EntityTag, int] = {
    EntityTag.entity: 6,
    EntityTag.missing: 2,
    EntityTag.language: 4,
}

_INTENT_MIN_FIELDS: dict[IntentTag, int] = {
    IntentTag.intent: 5,
    IntentTag.language: 5,
}


def decode_entity_tag(value: str) -> EntityTag:
    for tag in (EntityTag.entity, EntityTag.missing, EntityTag.language):
        if value.startswith(tag.value):
            return tag
    return EntityTag.unrecognized


def decode_intent_tag(value: str) -> IntentTag:
    if value == IntentTag.intent.value:
        return IntentTag.intent
    if value == IntentTag.language.value:
        return IntentTag.language
    return IntentTag.unrecognized


# Tolerant value parsing. These helpers are intentionally lossy: anything that is not a clean
# number becomes zero and anything that is not a JSON object becomes an empty dict.


def tolerant_int(value: str) -> int:
    """Parse a base-10 integer, returning `0` on any failure."""

    text = (value or "").strip()
    if not _INT_RE.fullmatch(text):
        return 0
    try:
        return int(text)
    except ValueError:
        # Exceeds the interpreter's int string conversion limit.
        return 0


def tolerant_float(value: str) -> float:
    """Parse a finite decimal float, returning `0.0` on any failure (NaN/inf included)."""

    text = (value or "").strip()
    if not _FLOAT_RE.fullmatch(text):
        return 0.0
    number = float(text)
    if not math.isfinite(number):
        return 0.0
    return number


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def tolerant_json_object(value: str) -> dict[str, Any]:
    """Decode a JSON object, returning a fresh empty dict for anything else.

    `NaN` and `Infinity` literals are not valid JSON and reject the whole object.
    """

    try:
        decoded = json.loads(value, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return {}
    if not isinstance(decoded, dict):
        return {}
    return decoded


@dataclass
class ParseDiagnostics:
    """Per-call counters describing what the parser kept and dropped.

    A fresh instance is created for every parse call; it is never shared.
    """

    records: int = 0
    kept: int = 0
    dropped: Counter[str] = field(default_factory=Counter)

    def drop(self, reason: str) -> None:
        self.dropped[reason] += 1

    @property
    def dropped_total(self) -> int:
        return sum(self.dropped.values())


def split_records(raw: str) -> list[list[str]]:
    """Split raw completion text into records, each a list of fields (tag first).

    Blank segments and the terminal sentinel are skipped.
    """

    records: list[list[str]] = []
    for segment in (raw or "").split(RECORD_SEPARATOR):
        segment = segment.strip()
        if not segment or segment == COMPLETE_SENTINEL:
            continue
        records.append(segment.split(FIELD_SEPARATOR))
    return records


def parse_entity_output_with_diagnostics(raw: str) -> tuple[EntityOutput, ParseDiagnostics]:
    """Parse an entity-extraction completion and report what was dropped."""

    diagnostics = ParseDiagnostics()
    entities: list[EntitySpan] = []
    missing: list[str] = []
    language = ""

    for fields in split_records(raw):
        diagnostics.records += 1
        tag = decode_entity_tag(fields[0])
        if tag is EntityTag.unrecognized:
            diagnostics.drop("unrecognized")
            continue
        if len(fields) < _ENTITY_MIN_FIELDS[tag]:
            diagnostics.drop(f"short:{tag.name}")
            continue

        match tag:
            case EntityTag.entity:
                entities.append(
                    EntitySpan(
                        type=fields[1],
                        raw=fields[2],
                        start=tolerant_int(fields[3]),
                        end=tolerant_int(fields[4]),
                        confidence=tolerant_float(fields[5]),
                    )
                )
            case EntityTag.missing:
                missing.append(fields[1])
            case EntityTag.language:
                # Later language records override earlier ones; fields after the code are unused.
                language = fields[1]
        diagnostics.kept += 1

    output = EntityOutput(entities=tuple(entities), missing=tuple(missing), language=language)
    _log_diagnostics("entity", diagnostics)
    return output, diagnostics


def parse_intent_output_with_diagnostics(raw: str) -> tuple[IntentOutput, ParseDiagnostics]:
    """Parse an intent-classification completion and report what was dropped."""

    diagnostics = ParseDiagnostics()
    intents: list[IntentResult] = []
    languages: list[LanguageResult] = []

    for fields in split_records(raw):
        diagnostics.records += 1
        tag = decode_intent_tag(fields[0])
        if tag is IntentTag.unrecognized:
            diagnostics.drop("unrecognized")
            continue
        if len(fields) < _INTENT_MIN_FIELDS[tag]:
            diagnostics.drop(f"short:{tag.name}")
            continue

        match tag:
            case IntentTag.intent:
                intents.append(
                    IntentResult(
                        name=fields[1],
                        confidence=tolerant_float(fields[2]),
                        priority=tolerant_float(fields[3]),
                        meta=tolerant_json_object(fields[4]),
                    )
                )
            case IntentTag.language:
                languages.append(
                    LanguageResult(
                        code=fields[1],
                        confidence=tolerant_float(fields[2]),
                        primary_flag=int(tolerant_float(fields[3])),
                        meta=tolerant_json_object(fields[4]),
                    )
                )
        diagnostics.kept += 1

    output = IntentOutput(intents=tuple(intents), languages=tuple(languages))
    _log_diagnostics("intent", diagnostics)
    return output, diagnostics


def parse_entity_output(raw: str) -> EntityOutput:
    """Parse an entity-extraction completion. Never raises."""

    return parse_entity_output_with_diagnostics(raw)[0]


def parse_intent_output(raw: str) -> IntentOutput:
    """Parse an intent-classification completion. Never raises."""

    return parse_intent_output_with_diagnostics(raw)[0]


def _log_diagnostics(variant: str, diagnostics: ParseDiagnostics) -> None:
    logger.debug(
        "parsed variant=%s records=%d kept=%d dropped=%s",
        variant,
        diagnostics.records,
        diagnostics.kept,
        dict(diagnostics.dropped),
    )
