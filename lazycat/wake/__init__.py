from lazycat.wake.detector import find_wake, strip_after_wake
from lazycat.wake.fuzzy import distance
from lazycat.wake.hypothesis import select_hypothesis
from lazycat.wake.phrases import DEFAULT_WAKE_PHRASES, Sensitivity, WakePhraseSet

__all__ = [
    "DEFAULT_WAKE_PHRASES",
    "Sensitivity",
    "WakePhraseSet",
    "distance",
    "find_wake",
    "select_hypothesis",
    "strip_after_wake",
]
