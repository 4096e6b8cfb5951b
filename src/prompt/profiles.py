"""Static persona profile table (MBTI-style personas keyed by uppercase type code)."""

from __future__ import annotations

import json
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def parse_profiles(payload: str) -> Mapping[str, str]:
    """Decode a JSON object of `{TYPE: description}` into a read-only mapping.

    Keys are uppercased and descriptions trimmed; non-string values are rejected.
    """

    decoded = json.loads(payload)
    if not isinstance(decoded, dict):
        raise ValueError("persona profiles must be a JSON object")

    profiles: dict[str, str] = {}
    for key, description in decoded.items():
        if not isinstance(description, str):
            raise ValueError(f"persona profile {key!r} must be a string")
        profiles[key.strip().upper()] = description.strip()
    return MappingProxyType(profiles)


@lru_cache(maxsize=1)
def default_profiles() -> Mapping[str, str]:
    """Return the bundled profile table (loaded once per process)."""

    return parse_profiles((TEMPLATES_DIR / "mbti.json").read_text(encoding="utf-8"))
