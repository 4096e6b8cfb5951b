"""Required-keys registry.

Maps an intent name to the ordered slot keys that must be filled before the intent can be acted
upon. The registry is built once at startup from an explicit mapping and is read-only afterwards.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType

ENV_PREFIX = "NLU_REQUIRED_"

_SEPARATOR_RE = re.compile(r"[ \-]")


def normalize_intent_name(name: str) -> str:
    """Normalize an intent name to its registry key (`ask price` -> `ASK_PRICE`)."""

    return _SEPARATOR_RE.sub("_", (name or "").strip()).upper()


def split_csv(value: str) -> tuple[str, ...]:
    """Split a comma-separated value, trimming parts and dropping empty ones."""

    return tuple(part.strip() for part in (value or "").split(",") if part.strip())


def _clean_keys(keys: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(keys, str):
        return split_csv(keys)
    return tuple(k.strip() for k in keys if k and k.strip())


class RequiredKeysRegistry:
    """Read-only lookup from intent name to required slot keys."""

    def __init__(self, mapping: Mapping[str, str | Iterable[str]] | None = None) -> None:
        entries: dict[str, tuple[str, ...]] = {}
        for name, keys in (mapping or {}).items():
            normalized = normalize_intent_name(name)
            if not normalized:
                continue
            cleaned = _clean_keys(keys)
            if cleaned:
                entries[normalized] = cleaned
        self._entries = MappingProxyType(entries)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> RequiredKeysRegistry:
        """Build a registry from `NLU_REQUIRED_<INTENT>=key1,key2` variables.

        The mapping is passed explicitly (usually `os.environ` at startup) so lookups never read
        the process environment.
        """

        return cls(
            {
                name[len(ENV_PREFIX):]: value
                for name, value in environ.items()
                if name.startswith(ENV_PREFIX) and len(name) > len(ENV_PREFIX)
            }
        )

    def required_keys_for(self, intent_name: str) -> tuple[str, ...]:
        """Return the required keys for `intent_name` (empty tuple when not configured)."""

        normalized = normalize_intent_name(intent_name)
        if not normalized:
            return ()
        return self._entries.get(normalized, ())

    @property
    def intents(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __contains__(self, intent_name: object) -> bool:
        return isinstance(intent_name, str) and bool(self.required_keys_for(intent_name))

    def __len__(self) -> int:
        return len(self._entries)
