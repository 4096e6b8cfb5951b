"""Tests for environment settings and application composition."""

from __future__ import annotations

import pytest

from src.app import create_app
from src.config.settings import (
    DEFAULT_ENTITIES,
    Settings,
    load_required_keys,
    load_settings,
)

_ENV_VARS = (
    "NLU_ENTITY",
    "NLU_INTENT",
    "BRAND_NAME",
    "CHANNEL",
    "TARGET_SEGMENTS",
    "MBTI_TYPE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.allowed_entities == DEFAULT_ENTITIES
    assert settings.allowed_entity_list()[:3] == ("product", "quantity", "brand")
    assert "ask_price:0.6" in settings.intent_list
    assert settings.persona_config().mbti_type == "EXPERT"
    assert settings.log_level == "INFO"


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NLU_ENTITY", " product , price ")
    monkeypatch.setenv("NLU_INTENT", "greet:0.1")
    monkeypatch.setenv("MBTI_TYPE", "enfp")

    settings = load_settings()

    assert settings.allowed_entity_list() == ("product", "price")
    assert settings.intent_prompt_context().intent_list_csv == "greet:0.1"
    assert settings.persona_config().mbti_type == "enfp"


@pytest.mark.parametrize("name", ["NLU_ENTITY", "NLU_INTENT"])
def test_blank_vocabulary_is_rejected(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    monkeypatch.setenv(name, " , ")

    with pytest.raises(RuntimeError, match="Invalid environment configuration"):
        load_settings()


def test_entity_prompt_context_uses_configured_vocabulary() -> None:
    settings = Settings(_env_file=None, NLU_ENTITY="brand,price")
    context = settings.entity_prompt_context(
        intent_name="ask_price",
        user_message="price?",
        language="eng",
        required_keys=("price",),
    )

    assert context.allowed_entities == ("brand", "price")
    assert context.required_keys == ("price",)


def test_load_required_keys_from_mapping() -> None:
    registry = load_required_keys({"NLU_REQUIRED_ASK_PRICE": "product,price"})
    assert registry.required_keys_for("ask price") == ("product", "price")


def test_app_renders_prompt_with_registry_keys() -> None:
    app = create_app(
        Settings(_env_file=None, NLU_ENTITY="product,price,brand"),
        {"NLU_REQUIRED_ASK_PRICE": "product,price,brand"},
    )

    prompt = app.entity_prompt("ask price", "How much is the iPhone?", "eng")

    assert "product,price,brand\n" in prompt
    assert "brand,price,product" in prompt


def test_app_checks_completion_against_registry() -> None:
    app = create_app(
        Settings(_env_file=None),
        {"NLU_REQUIRED_ASK_PRICE": "product,price,brand"},
    )

    check = app.check_completion(
        "ask_price",
        "(entity<||>product<||>iPhone<||>10<||>15<||>0.92"
        "##(entity<||>price<||>20000<||>30<||>35<||>0.4"
        "##(missing<||>brand##<|COMPLETE|>",
    )

    assert check.missing == ("price", "brand")
    assert check.self_reported == ("brand",)
    assert app.check_completion("greet", "").missing == ()
