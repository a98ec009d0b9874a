"""Warehouse size ladder and cost re-estimation."""

import re

# Approximate DBU consumption relative to the smallest size, in ladder order
SIZE_MULTIPLIER: dict[str, int] = {
    "2X-Small": 1,
    "X-Small": 2,
    "Small": 4,
    "Medium": 8,
    "Large": 16,
    "X-Large": 32,
    "2X-Large": 64,
    "3X-Large": 128,
    "4X-Large": 256,
}

LADDER = list(SIZE_MULTIPLIER)

# Unknown sizes are costed as Medium
DEFAULT_MULTIPLIER = SIZE_MULTIPLIER["Medium"]

_SEPARATORS = re.compile(r"[-_\s]+")
_BY_KEY = {_SEPARATORS.sub("-", name.upper()): name for name in LADDER}


def normalise_size(size: str) -> str:
    """Canonical ladder name for ``size``, or ``size`` unchanged if unknown.

    Matching ignores case and treats runs of ``-``, ``_`` and spaces alike,
    so ``"x_small"`` and ``"X Small"`` both map to ``"X-Small"``.
    """
    key = _SEPARATORS.sub("-", (size or "").strip().upper())
    return _BY_KEY.get(key, size)


def next_size(size: str) -> str | None:
    """One tier up, or None at the top of the ladder or for unknown sizes."""
    norm = normalise_size(size)
    if norm not in SIZE_MULTIPLIER:
        return None
    idx = LADDER.index(norm)
    return LADDER[idx + 1] if idx < len(LADDER) - 1 else None


def prev_size(size: str) -> str | None:
    """One tier down, or None at the bottom of the ladder or for unknown sizes."""
    norm = normalise_size(size)
    if norm not in SIZE_MULTIPLIER:
        return None
    idx = LADDER.index(norm)
    return LADDER[idx - 1] if idx > 0 else None


def size_multiplier(size: str) -> int:
    return SIZE_MULTIPLIER.get(normalise_size(size), DEFAULT_MULTIPLIER)


def estimate_cost_for_size(current_cost: float, current_size: str, target_size: str) -> float:
    """Scale weekly cost linearly by the ratio of size multipliers."""
    return current_cost * (size_multiplier(target_size) / size_multiplier(current_size))


def estimate_cost_for_clusters(current_cost: float, current_max: int, target_max: int) -> float:
    """Scale weekly cost linearly by the ratio of max cluster counts."""
    if current_max <= 0:
        return current_cost
    return current_cost * (target_max / current_max)
