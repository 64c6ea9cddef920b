"""
Module: billing_engines.verdict
Responsibility:
    Classify a measured lab parameter against its reference range
    expression into Normal / High / Low.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``<N``: Normal iff value < N, otherwise High (boundary is abnormal).
    - ``>N``: Normal iff value > N, otherwise Low (boundary is abnormal).
    - ``N1-N2``: Low below N1, High above N2, Normal otherwise (inclusive).
    - Decimal comparison only; no float drift at the boundaries.

Failure modes:
    - None. Empty or unparsable input yields ``Verdict.NONE`` (""),
      never an exception, because the form classifies on every keystroke.

Usage:
    from billing_engines.verdict import classify

    classify("15", "10-20")   # Verdict.NORMAL
    classify("5", "<5")       # Verdict.HIGH
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from billing_kernel.logging_config import get_logger

logger = get_logger("engines.verdict")

# Leading number of a free-text value, e.g. "12.5 mg/dl" -> "12.5".
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
_UNSIGNED = r"(\d+(?:\.\d+)?|\.\d+)"
_RANGE = re.compile(_UNSIGNED + r"\s*-\s*" + _UNSIGNED)


class Verdict(str, Enum):
    NORMAL = "Normal"
    HIGH = "High"
    LOW = "Low"
    NONE = ""


class RangeKind(str, Enum):
    LESS_THAN = "less_than"
    GREATER_THAN = "greater_than"
    RANGE = "range"


def parse_number(text: str | None) -> Decimal | None:
    """Parse the leading number of free text. Returns None if there is none."""
    if not text:
        return None
    match = _LEADING_NUMBER.match(text)
    if match is None:
        return None
    try:
        return Decimal(match.group(1))
    except InvalidOperation:
        return None


@dataclass(frozen=True, slots=True)
class ReferenceRange:
    """
    Parsed reference range expression.

    ``low`` is set for GREATER_THAN and RANGE, ``high`` for LESS_THAN and
    RANGE.
    """

    kind: RangeKind
    low: Decimal | None = None
    high: Decimal | None = None

    @classmethod
    def parse(cls, expression: str | None) -> ReferenceRange | None:
        """Parse ``<N``, ``>N`` or ``N1-N2``. Unparsable text gives None."""
        if not expression or not expression.strip():
            return None
        text = expression.strip()

        if text.startswith("<"):
            threshold = parse_number(text[1:])
            return None if threshold is None else cls(RangeKind.LESS_THAN, high=threshold)
        if text.startswith(">"):
            threshold = parse_number(text[1:])
            return None if threshold is None else cls(RangeKind.GREATER_THAN, low=threshold)

        match = _RANGE.search(text)
        if match is None:
            return None
        return cls(RangeKind.RANGE, low=Decimal(match.group(1)), high=Decimal(match.group(2)))

    def classify(self, value: Decimal) -> Verdict:
        match self.kind:
            case RangeKind.LESS_THAN:
                return Verdict.NORMAL if value < self.high else Verdict.HIGH
            case RangeKind.GREATER_THAN:
                return Verdict.NORMAL if value > self.low else Verdict.LOW
            case RangeKind.RANGE:
                if value < self.low:
                    return Verdict.LOW
                if value > self.high:
                    return Verdict.HIGH
                return Verdict.NORMAL
            case _:
                raise ValueError(f"Unknown range kind: {self.kind}")


def classify(measured_value: str | Decimal | int | None, reference: str | None) -> Verdict:
    """
    Classify a measured value against a reference range expression.

    ``measured_value`` is usually free text from the result form; its
    leading number is used. Empty or unparsable input gives ``Verdict.NONE``.
    """
    if measured_value is None or reference is None:
        return Verdict.NONE
    if isinstance(measured_value, (Decimal, int)) and not isinstance(measured_value, bool):
        value = Decimal(measured_value)
        if not value.is_finite():
            return Verdict.NONE
    else:
        value = parse_number(str(measured_value))
    if value is None:
        return Verdict.NONE

    parsed = ReferenceRange.parse(reference)
    if parsed is None:
        logger.debug("reference_range_unparsable", extra={"reference": reference})
        return Verdict.NONE
    return parsed.classify(value)


@dataclass(frozen=True)
class ParameterReading:
    """One parameter row of a test result."""

    name: str
    value: str
    reference: str = ""
    unit: str = ""


@dataclass(frozen=True)
class ParameterVerdict:
    reading: ParameterReading
    verdict: Verdict

    @property
    def is_abnormal(self) -> bool:
        return self.verdict in (Verdict.HIGH, Verdict.LOW)


def classify_parameters(readings: Sequence[ParameterReading]) -> tuple[ParameterVerdict, ...]:
    """Classify every parameter of a test result, preserving order."""
    results = tuple(
        ParameterVerdict(reading=r, verdict=classify(r.value, r.reference))
        for r in readings
    )
    abnormal = [p.reading.name for p in results if p.is_abnormal]
    if abnormal:
        logger.info("abnormal_parameters_detected", extra={
            "parameter_count": len(results),
            "abnormal": abnormal,
        })
    return results
