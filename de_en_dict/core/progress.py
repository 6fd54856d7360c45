"""Rate-limited progress reporting for long scans and downloads."""

import time
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[float], None]


def _now_ms() -> float:
    return time.monotonic() * 1000


class ProgressReporter:
    """Wraps a percent callback so it fires at most once per interval.

    The first report is held back for ``initial_delay_ms`` so quick operations
    produce no reports at all. Exceptions raised by the callback are logged and
    never interrupt the operation being reported on.
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        interval_ms: int = 100,
        initial_delay_ms: int = 500,
        report_zero: bool = False,
    ) -> None:
        self.callback = callback
        self.interval_ms = interval_ms
        self.initial_delay_ms = initial_delay_ms
        self.report_zero = report_zero
        self.sent_partial = False
        self.reports = 0
        self._next_report_ms = _now_ms() + initial_delay_ms

    def start(self) -> None:
        """Reset the clock and send the 0% report if requested."""
        self._next_report_ms = _now_ms() + self.initial_delay_ms
        if self.report_zero:
            self._emit(0.0)

    def update(self, done: int, total: int) -> None:
        """Report ``done`` out of ``total`` if the rate limit allows it."""
        if not self.callback or total <= 0:
            return
        now = _now_ms()
        if now < self._next_report_ms:
            return
        self._next_report_ms = now + self.interval_ms
        percent = 100.0 * done / total
        self._emit(percent)
        self.sent_partial = percent < 100

    def finish(self, always: bool = True) -> None:
        """Send the closing 100% report.

        Args:
            always: If False, only report when a partial report went out before
        """
        if always or self.sent_partial:
            self._emit(100.0)
        self.sent_partial = False

    def _emit(self, percent: float) -> None:
        if not self.callback:
            return
        self.reports += 1
        try:
            self.callback(percent)
        except Exception as e:
            logger.error("Progress callback failed", percent=percent, error=str(e))
