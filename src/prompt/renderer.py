"""Prompt template rendering.

Three prompt flavors are supported:
    - persona: the conversational system prompt (brand, channel, audience, persona profile),
    - entity: slot extraction for an already classified intent,
    - intent: intent classification and language detection.

Rendering fails fast with `ConfigError` on empty inputs or leftover `{{...}}` placeholders, so a
broken template never reaches the model. The entity and intent templates describe the record
protocol implemented in `src.nlu.protocol`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict

from src.nlu.protocol import COMPLETE_SENTINEL, FIELD_SEPARATOR, RECORD_SEPARATOR
from src.prompt.profiles import TEMPLATES_DIR, default_profiles

logger = logging.getLogger(__name__)

UNRESOLVED_MARKER = "{{"


class ConfigError(ValueError):
    """Raised when a prompt cannot be rendered from the given configuration."""


class InternalError(RuntimeError):
    """Raised when the message formatter breaks its one-system-message contract."""


class ChatMessage(BaseModel):
    """A single role-tagged chat message."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Literal["system", "user", "assistant"]
    content: str


MessageFormatter = Callable[[str], Sequence[ChatMessage]]


def system_messages(content: str) -> list[ChatMessage]:
    """Default formatter: wrap rendered text into exactly one system message."""

    return [ChatMessage(role="system", content=content)]


class PersonaConfig(BaseModel):
    """Inputs of the persona system prompt."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    brand_name: str
    channel: str
    target_segments: str
    mbti_type: str


class EntityPromptContext(BaseModel):
    """Inputs of the entity extraction prompt."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    intent_name: str
    required_keys: tuple[str, ...] = ()
    allowed_entities: tuple[str, ...] = ()
    user_message: str
    language: str


class IntentPromptContext(BaseModel):
    """Inputs of the intent classification prompt."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    intent_list_csv: str


def load_template(name: str) -> str:
    """Read a bundled template by file name.

    Raises:
        ConfigError: If the template is missing or empty.
    """

    path = TEMPLATES_DIR / name
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"template {name!r} could not be read") from exc
    if not text.strip():
        raise ConfigError(f"template {name!r} is empty")
    return text


def _require(**values: str) -> None:
    empty = [name for name, value in values.items() if not value.strip()]
    if empty:
        raise ConfigError(
            f"prompt configuration is incomplete: {', '.join(empty)} must not be empty"
        )


def _substitute(template: str, replacements: Mapping[str, str]) -> str:
    """Replace all placeholders in a single pass.

    Substituted values are never rescanned, so a user message containing `{{language}}` is not
    expanded. Longer placeholders win over shorter ones sharing a prefix.
    """

    if not replacements:
        return template
    keys = sorted(replacements, key=lambda k: (-len(k), k))
    pattern = re.compile("|".join(re.escape(k) for k in keys))
    return pattern.sub(lambda m: replacements[m.group(0)], template)


def _finalize(content: str, *, flavor: str, formatter: MessageFormatter | None) -> str:
    if UNRESOLVED_MARKER in content:
        raise ConfigError(f"{flavor} prompt still contains unresolved placeholders")

    messages = list((formatter or system_messages)(content))
    if not messages:
        logger.error("message formatter returned no messages flavor=%s", flavor)
        raise InternalError(f"{flavor} prompt formatting produced no messages")
    if len(messages) != 1 or messages[0].role != "system":
        logger.error(
            "message formatter broke its contract flavor=%s count=%d roles=%s",
            flavor,
            len(messages),
            [m.role for m in messages],
        )
        raise InternalError(f"{flavor} prompt formatting must produce exactly one system message")
    return messages[0].content


def render_persona_prompt(
        config: PersonaConfig,
        template: str | None = None,
        *,
        profiles: Mapping[str, str] | None = None,
        formatter: MessageFormatter | None = None,
) -> str:
    """Render the persona system prompt.

    `profiles` replaces the bundled table; its keys are matched case-insensitively.

    Raises:
        ConfigError: If a field is empty, the persona type has no profile, or placeholders remain.
        InternalError: If the formatter does not return exactly one system message.
    """

    _require(
        brand_name=config.brand_name,
        channel=config.channel,
        target_segments=config.target_segments,
        mbti_type=config.mbti_type,
    )
    mbti_type = config.mbti_type.upper()

    table: Mapping[str, str]
    if profiles is None:
        table = default_profiles()
    else:
        table = {key.strip().upper(): value for key, value in profiles.items()}
    description = table.get(mbti_type)
    if description is None:
        raise ConfigError(f"profile not found: {mbti_type!r}")

    content = _substitute(
        (template if template is not None else load_template("system_prompt.txt")).strip(),
        {
            "{{BRAND_NAME}}": config.brand_name,
            "{{CHANNEL}}": config.channel,
            "{{TARGET_SEGMENTS}}": config.target_segments,
            "{{MBTI_TYPE}}": mbti_type,
            "{{MBTI}}": description.strip(),
        },
    )
    return _finalize(content, flavor="persona", formatter=formatter)


def allowed_entities_csv(entities: Sequence[str]) -> str:
    """Deduplicate and sort entity names into a comma-separated list."""

    return ",".join(sorted({e.strip() for e in entities if e.strip()}))


def render_entity_prompt(
        context: EntityPromptContext,
        template: str | None = None,
        *,
        formatter: MessageFormatter | None = None,
) -> str:
    """Render the entity extraction prompt.

    Raises:
        ConfigError: If a required field is empty or placeholders remain.
        InternalError: If the formatter does not return exactly one system message.
    """

    allowed_csv = allowed_entities_csv(context.allowed_entities)
    _require(
        intent_name=context.intent_name,
        allowed_entities=allowed_csv,
        user_message=context.user_message,
        language=context.language,
    )
    required_csv = ",".join(k for k in context.required_keys if k)

    content = _substitute(
        template if template is not None else load_template("entity_template.txt"),
        {
            "{{intent_name}}": context.intent_name,
            "{{required_keys_csv}}": required_csv,
            "{{allowed_entities_csv}}": allowed_csv,
            "{{user_message}}": context.user_message,
            "{{language}}": context.language,
        },
    )
    return _finalize(content, flavor="entity", formatter=formatter)


def render_intent_prompt(
        context: IntentPromptContext,
        template: str | None = None,
        *,
        formatter: MessageFormatter | None = None,
) -> str:
    """Render the intent classification prompt.

    Only the protocol tokens and `{intent_list}` are replaced, leaving JSON braces in the template
    untouched.

    Raises:
        ConfigError: If the intent list is empty or placeholders remain.
        InternalError: If the formatter does not return exactly one system message.
    """

    _require(intent_list_csv=context.intent_list_csv)

    content = _substitute(
        template if template is not None else load_template("intent_template.txt"),
        {
            "{TD}": FIELD_SEPARATOR,
            "{RD}": RECORD_SEPARATOR,
            "{CD}": COMPLETE_SENTINEL,
            "{intent_list}": context.intent_list_csv,
        },
    )
    return _finalize(content, flavor="intent", formatter=formatter)
