"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file). Settings are read once at startup and turned into explicit
values (prompt contexts, the required-keys registry); parsing and validation code never reads the
environment itself.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.nlu.registry import RequiredKeysRegistry, split_csv
from src.prompt.renderer import EntityPromptContext, IntentPromptContext, PersonaConfig

DEFAULT_ENTITIES = "product,quantity,brand,price,color,model,spec,budget,warranty,delivery"
DEFAULT_INTENTS = (
    "greet:0.1, purchase_intent:0.8, inquiry_intent:0.7, support_intent:0.6, "
    "complain_intent:0.6, complaint:0.5, cancel_order:0.4, ask_price:0.6, "
    "compare_product:0.5, delivery_issue:0.7"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    allowed_entities: str = Field(default=DEFAULT_ENTITIES, alias="NLU_ENTITY")
    intent_list: str = Field(default=DEFAULT_INTENTS, alias="NLU_INTENT")

    brand_name: str = Field(default="Chative Brand", alias="BRAND_NAME")
    channel: str = Field(default="Online Storefront", alias="CHANNEL")
    target_segments: str = Field(
        default="Young Professionals seeking lifestyle upgrades",
        alias="TARGET_SEGMENTS",
    )
    mbti_type: str = Field(default="EXPERT", alias="MBTI_TYPE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("allowed_entities", "intent_list")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        """Reject blank vocabularies; an empty list would render a useless prompt."""

        if not split_csv(value):
            raise ValueError("must contain at least one comma-separated value")
        return value.strip()

    def allowed_entity_list(self) -> tuple[str, ...]:
        """Return the configured entity vocabulary as a tuple."""

        return split_csv(self.allowed_entities)

    def persona_config(self) -> PersonaConfig:
        return PersonaConfig(
            brand_name=self.brand_name,
            channel=self.channel,
            target_segments=self.target_segments,
            mbti_type=self.mbti_type,
        )

    def intent_prompt_context(self) -> IntentPromptContext:
        return IntentPromptContext(intent_list_csv=self.intent_list)

    def entity_prompt_context(
            self,
            *,
            intent_name: str,
            user_message: str,
            language: str,
            required_keys: tuple[str, ...] = (),
    ) -> EntityPromptContext:
        """Build an entity prompt context using the configured entity vocabulary."""

        return EntityPromptContext(
            intent_name=intent_name,
            required_keys=required_keys,
            allowed_entities=self.allowed_entity_list(),
            user_message=user_message,
            language=language,
        )


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc


def load_required_keys(environ: Mapping[str, str] | None = None) -> RequiredKeysRegistry:
    """Build the required-keys registry from `NLU_REQUIRED_*` variables.

    Defaults to the process environment; pass a mapping to build it from anything else.
    """

    return RequiredKeysRegistry.from_environ(os.environ if environ is None else environ)
