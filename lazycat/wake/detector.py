from __future__ import annotations

from lazycat.orchestrator.events import WakeMatch
from lazycat.wake.fuzzy import within
from lazycat.wake.phrases import DEFAULT_WAKE_PHRASES, Sensitivity, WakePhraseSet

DEFAULT_PREFIX_WINDOW = 40

# Separators ASR engines put after a vocative ("hey cat, open ...").
_LEADING_SEPARATORS = ",.!?;:-"


def find_wake(
    text: str,
    phrases: WakePhraseSet = DEFAULT_WAKE_PHRASES,
    sensitivity: Sensitivity = Sensitivity.DEFAULT,
    *,
    prefix_window: int = DEFAULT_PREFIX_WINDOW,
) -> WakeMatch | None:
    """Locate the earliest wake phrase in ``text``.

    Exact substring hits win; the earliest start index is returned and ties go to the
    variant declared first. Without an exact hit, each variant is slid across the first
    ``prefix_window`` characters and the first window within the sensitivity's edit
    distance is returned (variants in declared order, positions left to right).
    """
    lower = text.lower()

    best: WakeMatch | None = None
    for variant in phrases:
        index = lower.find(variant)
        if index != -1 and (best is None or index < best.start_index):
            best = WakeMatch(index, variant)
    if best is not None:
        return best

    window = lower[:prefix_window]
    max_distance = sensitivity.max_distance
    for variant in phrases:
        span = len(variant)
        for start in range(max(0, len(window) - span) + 1):
            candidate = window[start : start + span]
            if within(candidate, variant, max_distance):
                return WakeMatch(start, variant)
    return None


def strip_after_wake(
    text: str,
    phrases: WakePhraseSet = DEFAULT_WAKE_PHRASES,
    sensitivity: Sensitivity = Sensitivity.DEFAULT,
    *,
    prefix_window: int = DEFAULT_PREFIX_WINDOW,
) -> str | None:
    """Text following the wake phrase, ``""`` for a bare wake phrase, ``None`` when there is no wake phrase."""
    match = find_wake(text, phrases, sensitivity, prefix_window=prefix_window)
    if match is None:
        return None
    # str.lower() can change the length of a few non-ASCII strings; indices then refer to the lowered text.
    source = text if len(text.lower()) == len(text) else text.lower()
    remainder = source[match.end_index :].strip()
    return remainder.lstrip(_LEADING_SEPARATORS).strip()


__all__ = ["DEFAULT_PREFIX_WINDOW", "find_wake", "strip_after_wake"]
