from __future__ import annotations


def distance(a: str, b: str, max_distance: int) -> int:
    """Levenshtein distance between ``a`` and ``b``, capped at ``max_distance + 1``.

    Returns ``max_distance + 1`` without scanning when the lengths alone rule a match
    out, and stops as soon as every cell of the current row exceeds the bound. Only one
    row over the shorter string is kept.
    """
    if max_distance < 0:
        raise ValueError("max_distance must be non-negative")
    over = max_distance + 1
    if abs(len(a) - len(b)) > max_distance:
        return over
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return min(len(a), over)

    row = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        diagonal = row[0]
        row[0] = i
        row_min = i
        for j, char_b in enumerate(b, start=1):
            above = row[j]
            row[j] = min(
                above + 1,
                row[j - 1] + 1,
                diagonal + (char_a != char_b),
            )
            diagonal = above
            if row[j] < row_min:
                row_min = row[j]
        if row_min > max_distance:
            return over
    return min(row[-1], over)


def within(a: str, b: str, max_distance: int) -> bool:
    return distance(a, b, max_distance) <= max_distance


__all__ = ["distance", "within"]
