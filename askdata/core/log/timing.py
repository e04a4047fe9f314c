"""Duration and throughput logging for queries and model calls."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter
from typing import Iterator, Optional


@dataclass
class _Timer:
    label: str
    logger: logging.Logger
    level: int
    unit: str
    slow_after: Optional[float]
    count: int = 0
    start: float = field(default_factory=perf_counter)

    def add(self, amount: int = 1) -> None:
        self.count += amount

    @property
    def elapsed(self) -> float:
        return perf_counter() - self.start

    def _throughput(self, elapsed: float) -> str:
        if not self.count:
            return ""
        text = f" ({self.count:,} {self.unit}"
        if elapsed > 0:
            text += f" @ {self.count / elapsed:,.0f} {self.unit}/s"
        return text + ")"

    def finish(self, error: Optional[BaseException] = None) -> None:
        elapsed = self.elapsed
        if error is not None:
            self.logger.error(
                "%s failed after %.2fs: %s", self.label, elapsed, error.__class__.__name__
            )
            return

        message = f"{self.label} completed in {elapsed:.2f}s{self._throughput(elapsed)}"
        if self.slow_after is not None and elapsed > self.slow_after:
            self.logger.warning("%s, slower than %.1fs", message, self.slow_after)
        else:
            self.logger.log(self.level, message)


@contextmanager
def timeit(
    label: str,
    *,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
    unit: str = "items",
    total: Optional[int] = None,
    slow_after: Optional[float] = None,
) -> Iterator[_Timer]:
    """Time the block and log how long it took.

    Args:
        label: Description of the operation being timed
        logger: Logger to use (defaults to "askdata.timer")
        level: Level of the completion message
        unit: Unit counted through ``timer.add`` (e.g. "rows", "calls")
        total: Starting count, for blocks whose size is known up front
        slow_after: Seconds after which completion is logged as a warning
    """
    timer = _Timer(
        label=label,
        logger=logger or logging.getLogger("askdata.timer"),
        level=level,
        unit=unit,
        slow_after=slow_after,
        count=total or 0,
    )

    try:
        yield timer
    except Exception as exc:
        timer.finish(error=exc)
        raise
    else:
        timer.finish()
