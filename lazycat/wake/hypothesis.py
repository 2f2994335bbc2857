from __future__ import annotations

from collections.abc import Sequence

from lazycat.wake.detector import DEFAULT_PREFIX_WINDOW, find_wake
from lazycat.wake.phrases import DEFAULT_WAKE_PHRASES, Sensitivity, WakePhraseSet


def usable_alternatives(alternatives: Sequence[str]) -> list[str]:
    return [text.strip() for text in alternatives if text and text.strip()]


def select_hypothesis(
    alternatives: Sequence[str],
    sensitivity: Sensitivity = Sensitivity.DEFAULT,
    phrases: WakePhraseSet = DEFAULT_WAKE_PHRASES,
    *,
    prefix_window: int = DEFAULT_PREFIX_WINDOW,
) -> str:
    """Pick the n-best alternative to act on.

    The first alternative (engine order) containing a wake phrase wins, since the
    engine's ranking knows nothing about the wake grammar. Otherwise the longest
    alternative is taken as the most fully transcribed one, earliest on ties. The
    length fallback is a tunable heuristic, not a proven rule.
    """
    candidates = usable_alternatives(alternatives)
    if not candidates:
        raise ValueError("No non-blank transcript alternatives to choose from")

    for text in candidates:
        if find_wake(text, phrases, sensitivity, prefix_window=prefix_window) is not None:
            return text

    longest = candidates[0]
    for text in candidates[1:]:
        if len(text) > len(longest):
            longest = text
    return longest


__all__ = ["select_hypothesis", "usable_alternatives"]
