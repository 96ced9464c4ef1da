"""Threshold range expressions shared by every counting probe.

The grammar follows the monitoring-plugin range convention::

    [@][start:][end]

``start`` defaults to ``0`` when omitted and ``~`` stands for negative
infinity; an omitted ``end`` means positive infinity. Without ``@`` a value
alerts when it falls *outside* the range, with ``@`` it alerts when it falls
*inside*.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass

from .errors import ConfigError

_INTEGER_RE = re.compile(r"^-?\d+$")


class ThresholdError(ConfigError):
    """Raised when a threshold expression cannot be parsed."""


@dataclass(frozen=True, slots=True)
class RangeThreshold:
    """Closed numeric range plus an inversion flag."""

    min: int | float
    max: int | float
    inverted: bool = False
    expression: str = ""

    @classmethod
    def parse(cls, expression: str) -> RangeThreshold:
        """Parse *expression* into a range, raising :class:`ThresholdError`."""
        if not isinstance(expression, str):
            raise ThresholdError(f"Threshold must be a string, got {expression!r}.")
        text = expression.strip()
        body = text
        inverted = False
        if body.startswith("@"):
            inverted = True
            body = body[1:]
        if not body:
            raise ThresholdError(f"Empty threshold expression {expression!r}.")

        parts = body.split(":")
        if len(parts) > 2:
            raise ThresholdError(f"Malformed threshold expression {expression!r}.")
        if len(parts) == 2:
            start_text, end_text = parts
        else:
            start_text, end_text = "", parts[0]

        if start_text == "~":
            start: int | float = -math.inf
        elif start_text == "":
            start = 0
        else:
            start = _parse_bound(start_text, expression)

        end = math.inf if end_text == "" else _parse_bound(end_text, expression)

        if start > end:
            raise ThresholdError(
                f"Threshold {expression!r} has start {start} greater than end {end}."
            )
        return cls(min=start, max=end, inverted=inverted, expression=text)

    def contains(self, value: int | float) -> bool:
        """Return ``True`` when *value* lies within ``[min, max]``."""
        return self.min <= value <= self.max

    def alerts(self, value: int | float) -> bool:
        """Return ``True`` when *value* should raise this threshold's alert."""
        return self.contains(value) == self.inverted

    def __str__(self) -> str:
        """Return the literal expression the threshold was parsed from."""
        return self.expression


def _parse_bound(text: str, expression: str) -> int:
    if not _INTEGER_RE.match(text):
        raise ThresholdError(
            f"Malformed threshold expression {expression!r}: {text!r} is not an integer."
        )
    return int(text)


def parse_optional(expression: str | None) -> RangeThreshold | None:
    """Parse *expression* unless it is ``None`` or blank."""
    if expression is None or not expression.strip():
        return None
    return RangeThreshold.parse(expression)


__all__ = ["RangeThreshold", "ThresholdError", "parse_optional"]
