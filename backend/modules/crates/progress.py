"""
Progress normalization.

The playlist importer reports progress in whatever shape is convenient at
the call site: bare numbers, ``{current, total}`` pairs, objects keyed by
``percentage``/``progress``/``value``/``percent``, or free text such as
"Processing 4 / 9 tracks". Each shape has one extractor; the first that
yields a number wins. When none does, the percentage advances by a stage
step instead, so the displayed value never stalls, regresses, or goes NaN.
"""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .models import ProgressUpdate

RUNNING_FLOOR = 10
RUNNING_CEILING = 90
STAGE_CAP = 99

PERCENT_KEYS = ("percentage", "progress", "value", "percent")

_FRACTION = re.compile(r"(\d+(?:\.\d+)?)\s*(?:/|\bof\b)\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%")


@dataclass(frozen=True)
class Reading:
    """What an extractor found: a raw percentage and an optional message."""

    percent: float
    message: Optional[str] = None


Extractor = Callable[[Any], Optional[Reading]]


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _message_of(payload: Any) -> Optional[str]:
    if isinstance(payload, Mapping):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


def _ratio(current: Optional[float], total: Optional[float]) -> Optional[float]:
    if current is None or total is None or total <= 0:
        return None
    return current / total * 100


def extract_number(payload: Any) -> Optional[Reading]:
    number = _as_number(payload)
    return Reading(number) if number is not None else None


def extract_ratio(payload: Any) -> Optional[Reading]:
    if not isinstance(payload, Mapping):
        return None
    percent = _ratio(_as_number(payload.get("current")), _as_number(payload.get("total")))
    return Reading(percent, _message_of(payload)) if percent is not None else None


def extract_keyed(payload: Any) -> Optional[Reading]:
    if not isinstance(payload, Mapping):
        return None
    for key in PERCENT_KEYS:
        number = _as_number(payload.get(key))
        if number is not None:
            return Reading(number, _message_of(payload))
    return None


def extract_text(payload: Any) -> Optional[Reading]:
    text = payload if isinstance(payload, str) else _message_of(payload)
    if not text:
        return None
    match = _FRACTION.search(text)
    if match:
        percent = _ratio(float(match.group(1)), float(match.group(2)))
        if percent is not None:
            return Reading(percent, text.strip())
    match = _PERCENT.search(text)
    if match:
        return Reading(float(match.group(1)), text.strip())
    return None


DEFAULT_EXTRACTORS: tuple[Extractor, ...] = (
    extract_number,
    extract_ratio,
    extract_keyed,
    extract_text,
)


def _clamp(value: float, low: int, high: int) -> int:
    return int(min(high, max(low, round(value))))


class ProgressNormalizer:
    """
    Turns raw progress payloads into monotonic ProgressUpdates for one job.

    Importer readings are clamped to the running band (10..90); the runner
    reports its own stage boundaries through ``stage``.

    Unreadable payloads advance a stage counter instead. Past the ceiling it
    climbs one point at a time and stops at STAGE_CAP (99), since 100 is
    reserved for completion. From then on repeated unreadable payloads hold
    at 99 rather than rising.
    """

    def __init__(
        self,
        extractors: Sequence[Extractor] = DEFAULT_EXTRACTORS,
        floor: int = RUNNING_FLOOR,
        ceiling: int = RUNNING_CEILING,
    ):
        self._extractors = tuple(extractors)
        self.floor = floor
        self.ceiling = ceiling
        self.last = 0

    def _read(self, payload: Any) -> Optional[Reading]:
        for extractor in self._extractors:
            reading = extractor(payload)
            if reading is not None:
                return reading
        return None

    def _next_stage(self) -> int:
        if self.last < self.ceiling:
            return self.last + max(1, (self.ceiling - self.last) // 5)
        return min(STAGE_CAP, self.last + 1)

    def normalize(self, payload: Any) -> ProgressUpdate:
        """Normalize one importer payload."""
        reading = self._read(payload)
        if reading is not None:
            percent = max(self.last, _clamp(reading.percent, self.floor, self.ceiling))
            message = reading.message
        else:
            percent = self._next_stage()
            message = _message_of(payload)
            if message is None and isinstance(payload, str) and payload.strip():
                message = payload.strip()

        self.last = percent
        return ProgressUpdate(percent, message or f"Processing playlist... {percent}%")

    def stage(self, percent: int, message: str) -> ProgressUpdate:
        """Record a runner stage boundary (never moves backwards)."""
        self.last = max(self.last, _clamp(percent, 0, 100))
        return ProgressUpdate(self.last, message)

    def heartbeat(self, message: str = "Still working...") -> ProgressUpdate:
        """Liveness event at the current percentage."""
        return ProgressUpdate(self.last, message)
