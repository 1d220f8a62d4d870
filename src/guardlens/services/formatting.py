"""Display helpers for timestamps and rule results."""

from __future__ import annotations

import math
from datetime import datetime

from guardlens.models.domain import RuleResultEnum

# Anything above this is taken to be epoch milliseconds.
MS_THRESHOLD = 1e10

INVALID_DATE = "Invalid Date"

_RESULT_LABELS: dict[str, str] = {r.value: r.value for r in RuleResultEnum}

BADGE_VARIANTS: dict[str, str] = {
    RuleResultEnum.PASS.value: "outline",
    RuleResultEnum.FAIL.value: "destructive",
    RuleResultEnum.SKIPPED.value: "secondary",
}

# rich styles for each badge variant
BADGE_STYLES: dict[str, str] = {
    "outline": "bold",
    "destructive": "bold white on red",
    "secondary": "black on grey70",
}

# (glyph, rich style) per result
RESULT_ICONS: dict[str, tuple[str, str]] = {
    RuleResultEnum.PASS.value: ("✓", "green"),
    RuleResultEnum.FAIL.value: ("✗", "bold red"),
    RuleResultEnum.SKIPPED.value: ("»", "grey50"),
    RuleResultEnum.UNAVAILABLE.value: ("?", "grey50"),
    RuleResultEnum.PARTIALLY_UNAVAILABLE.value: ("⚠", "yellow"),
    RuleResultEnum.MODEL_NOT_AVAILABLE.value: ("!", "red"),
}
_FALLBACK_ICON = RESULT_ICONS[RuleResultEnum.UNAVAILABLE.value]


def _as_str(result) -> str:
    return result.value if isinstance(result, RuleResultEnum) else str(result)


def to_datetime(timestamp: float) -> datetime:
    """Epoch seconds or milliseconds (told apart by magnitude) to local time."""
    seconds = timestamp / 1000 if timestamp > MS_THRESHOLD else timestamp
    return datetime.fromtimestamp(seconds)


def format_date(timestamp: float) -> str:
    try:
        return to_datetime(timestamp).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, OverflowError, OSError):
        return INVALID_DATE


def format_rule_result(result) -> str:
    value = _as_str(result)
    return _RESULT_LABELS.get(value, value)


def badge_variant(result) -> str:
    return BADGE_VARIANTS.get(_as_str(result), "outline")


def badge_style(result) -> str:
    return BADGE_STYLES[badge_variant(result)]


def result_icon(result) -> tuple[str, str]:
    return RESULT_ICONS.get(_as_str(result), _FALLBACK_ICON)


def percent(value: float) -> int:
    # half-up, so 0.125 shows as 13%
    return math.floor(value * 100 + 0.5)
