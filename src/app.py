"""Application composition root.

This module wires together configuration and the required-keys registry for NLU callers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from src.config.settings import Settings, load_required_keys
from src.nlu.protocol import parse_entity_output
from src.nlu.registry import RequiredKeysRegistry
from src.nlu.slots import SlotCheck, check_slots
from src.prompt.renderer import render_entity_prompt


@dataclass(frozen=True)
class App:
    """Shared, read-only dependencies for prompt rendering and slot validation."""

    settings: Settings
    registry: RequiredKeysRegistry

    def entity_prompt(self, intent_name: str, user_message: str, language: str) -> str:
        """Render the entity prompt for an intent, including its configured required keys."""

        context = self.settings.entity_prompt_context(
            intent_name=intent_name,
            user_message=user_message,
            language=language,
            required_keys=self.registry.required_keys_for(intent_name),
        )
        return render_entity_prompt(context)

    def check_completion(self, intent_name: str, raw: str) -> SlotCheck:
        """Parse an entity completion and compute the slots still missing for the intent."""

        output = parse_entity_output(raw)
        return check_slots(output, self.registry.required_keys_for(intent_name))


def create_app(settings: Settings, environ: Mapping[str, str] | None = None) -> App:
    """Create the application container."""

    return App(settings=settings, registry=load_required_keys(environ))
