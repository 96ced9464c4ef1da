"""Turn a measured count into a verdict."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..thresholds import RangeThreshold
from .models import PerfData, Severity, Verdict

LOGGER = logging.getLogger(__name__)


def plural(singular: str, plural_form: str | None = None) -> Callable[[int], str]:
    """Return a describer rendering ``"<count> <noun>"`` with number agreement."""
    many = plural_form or f"{singular}s"

    def _describe(count: int) -> str:
        return f"{count} {singular if count == 1 else many}"

    return _describe


class VerdictEngine:
    """Evaluate a count against optional warning and critical thresholds.

    Decision order, first match wins:

    1. critical configured and alerting -> CRITICAL
    2. warning configured and alerting -> WARNING
    3. any threshold configured -> OK
    4. no thresholds: a positive count is OK, zero is CRITICAL
    """

    def __init__(
        self,
        metric: str,
        *,
        describe: Callable[[int], str],
        empty_message: str,
        uom: str = "",
    ) -> None:
        """Store the perfdata label and message helpers for one probe."""
        self._metric = metric
        self._describe = describe
        self._empty_message = empty_message
        self._uom = uom

    @property
    def metric(self) -> str:
        """Return the perfdata label used for the primary count."""
        return self._metric

    def evaluate(
        self,
        count: int,
        warning: RangeThreshold | None = None,
        critical: RangeThreshold | None = None,
    ) -> Verdict:
        """Return the verdict for *count*."""
        severity, summary = self._decide(count, warning, critical)
        LOGGER.debug(
            "Evaluated %s=%s warning=%s critical=%s -> %s",
            self._metric,
            count,
            warning,
            critical,
            severity.name,
        )
        perfdata = PerfData(
            label=self._metric,
            value=count,
            warn=str(warning) if warning is not None else "",
            crit=str(critical) if critical is not None else "",
            uom=self._uom,
        )
        return Verdict(severity=severity, summary=summary, perfdata=(perfdata,))

    def _decide(
        self,
        count: int,
        warning: RangeThreshold | None,
        critical: RangeThreshold | None,
    ) -> tuple[Severity, str]:
        description = self._describe(count)
        if critical is not None and critical.alerts(count):
            return Severity.CRITICAL, f"{description} (critical threshold '{critical}' triggered)"
        if warning is not None and warning.alerts(count):
            return Severity.WARNING, f"{description} (warning threshold '{warning}' triggered)"
        if warning is not None or critical is not None:
            return Severity.OK, description
        if count > 0:
            return Severity.OK, f"Found {description}"
        return Severity.CRITICAL, self._empty_message


__all__ = ["VerdictEngine", "plural"]
