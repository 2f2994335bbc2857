from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import IntEnum


class Sensitivity(IntEnum):
    """Ordinal wake sensitivity; higher tolerates more edits in fuzzy matching."""

    STRICT = 0
    DEFAULT = 1
    LOOSE = 2

    @property
    def max_distance(self) -> int:
        return int(self) + 1


@dataclass(frozen=True, slots=True)
class WakePhraseSet:
    """Ordered, immutable set of lowercase wake-phrase variants.

    Declaration order matters: it breaks ties between variants matching at the same
    position, so a variant that extends another (``hey cats`` / ``hey cat``) must be
    declared first.
    """

    phrases: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.phrases:
            raise ValueError("Wake phrase set must not be empty")
        seen: set[str] = set()
        for phrase in self.phrases:
            if not phrase or phrase != phrase.strip():
                raise ValueError(f"Wake phrase {phrase!r} must be non-blank without surrounding whitespace")
            if phrase != phrase.lower():
                raise ValueError(f"Wake phrase {phrase!r} must be lowercase")
            if phrase in seen:
                raise ValueError(f"Duplicate wake phrase {phrase!r}")
            seen.add(phrase)

    @classmethod
    def of(cls, *phrases: str) -> "WakePhraseSet":
        return cls(tuple(phrases))

    def __iter__(self) -> Iterator[str]:
        return iter(self.phrases)

    def __len__(self) -> int:
        return len(self.phrases)

    def __contains__(self, phrase: object) -> bool:
        return phrase in self.phrases


# Canonical phrases plus mis-hearings observed from browser speech recognition.
DEFAULT_WAKE_PHRASES = WakePhraseSet.of(
    "hey cats",
    "hey cat",
    "lazy cat",
    "he got",
    "hey cut",
    "lazy cut",
    "hey cap",
    "hey cad",
    "hey kit",
    "hey kate",
)


__all__ = ["Sensitivity", "WakePhraseSet", "DEFAULT_WAKE_PHRASES"]
