"""Command-line tooling for prompts and completions.

Examples:
    python -m src.nlu.cli render-intent
    python -m src.nlu.cli render-entity --intent ask_price --message "How much is the iPhone 15?"
    python -m src.nlu.cli parse-entity --path completion.txt --intent ask_price
    echo "(intent<||>greet<||>0.9<||>0.1<||>{}##<|COMPLETE|>" | python -m src.nlu.cli parse-intent
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from src.app import App, create_app
from src.config.logging import configure_logging
from src.config.settings import load_settings
from src.nlu.protocol import (
    parse_entity_output_with_diagnostics,
    parse_intent_output_with_diagnostics,
)
from src.nlu.slots import check_slots
from src.prompt.renderer import (
    ConfigError,
    InternalError,
    render_intent_prompt,
    render_persona_prompt,
)

logger = logging.getLogger(__name__)


def _read_completion(path: str | None) -> str:
    if path:
        return Path(path).read_text(encoding="utf-8")
    return sys.stdin.read()


def _dump(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _cmd_render_entity(app: App, args: argparse.Namespace) -> None:
    print(app.entity_prompt(args.intent, args.message, args.language))


def _cmd_render_intent(app: App, args: argparse.Namespace) -> None:
    print(render_intent_prompt(app.settings.intent_prompt_context()))


def _cmd_render_persona(app: App, args: argparse.Namespace) -> None:
    print(render_persona_prompt(app.settings.persona_config()))


def _cmd_parse_entity(app: App, args: argparse.Namespace) -> None:
    output, diagnostics = parse_entity_output_with_diagnostics(_read_completion(args.path))
    payload: dict[str, Any] = output.model_dump(mode="json")

    if args.intent:
        check = check_slots(output, app.registry.required_keys_for(args.intent))
        payload["missing_keys"] = list(check.missing)
        payload["unconfirmed"] = list(check.unconfirmed)

    logger.info(
        "parsed entity completion entities=%d dropped=%d",
        len(output.entities),
        diagnostics.dropped_total,
    )
    _dump(payload)


def _cmd_parse_intent(app: App, args: argparse.Namespace) -> None:
    output, diagnostics = parse_intent_output_with_diagnostics(_read_completion(args.path))
    logger.info(
        "parsed intent completion intents=%d languages=%d dropped=%d",
        len(output.intents),
        len(output.languages),
        diagnostics.dropped_total,
    )
    _dump(output.model_dump(mode="json"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render NLU prompts and parse model completions.")
    sub = parser.add_subparsers(dest="command", required=True)

    entity = sub.add_parser("render-entity", help="Render the entity extraction prompt.")
    entity.add_argument("--intent", required=True, help="Classified intent name.")
    entity.add_argument("--message", required=True, help="Customer message to extract from.")
    entity.add_argument("--language", default="eng", help="ISO 639-3 language code.")
    entity.set_defaults(handler=_cmd_render_entity)

    intent = sub.add_parser("render-intent", help="Render the intent classification prompt.")
    intent.set_defaults(handler=_cmd_render_intent)

    persona = sub.add_parser("render-persona", help="Render the persona system prompt.")
    persona.set_defaults(handler=_cmd_render_persona)

    parse_entity = sub.add_parser("parse-entity", help="Parse an entity extraction completion.")
    parse_entity.add_argument("--path", help="Completion file (defaults to stdin).")
    parse_entity.add_argument(
        "--intent",
        help="Intent name; when given, also compute missing keys from NLU_REQUIRED_<INTENT>.",
    )
    parse_entity.set_defaults(handler=_cmd_parse_entity)

    parse_intent = sub.add_parser("parse-intent", help="Parse an intent classification completion.")
    parse_intent.add_argument("--path", help="Completion file (defaults to stdin).")
    parse_intent.set_defaults(handler=_cmd_parse_intent)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""

    args = build_parser().parse_args(argv)

    load_dotenv(".env")
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)

    try:
        args.handler(app, args)
    except (ConfigError, InternalError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
