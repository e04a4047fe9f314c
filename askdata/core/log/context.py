"""Key-value context (database, stage, job) carried into every log record."""
from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Mapping

_fields: contextvars.ContextVar[Mapping[str, object]] = contextvars.ContextVar(
    "askdata_log_fields", default={}
)


def _merged(values: Mapping[str, object]) -> Dict[str, object]:
    merged = dict(_fields.get())
    merged.update((key, value) for key, value in values.items() if value is not None)
    return merged


class LogContext:
    """Fields bound here are prefixed to messages as ``key=value``.

    The fields live in a context variable, so each asyncio task and each
    ``asyncio.to_thread`` call sees the values bound by its caller.
    """

    def bind(self, **values: object) -> None:
        _fields.set(_merged(values))

    def clear(self) -> None:
        _fields.set({})

    def as_dict(self) -> Dict[str, object]:
        return dict(_fields.get())

    def render(self) -> str:
        fields = _fields.get()
        return "".join(f"{key}={value} " for key, value in fields.items())

    @contextmanager
    def scope(self, **values: object) -> Iterator[None]:
        """Bind ``values`` inside the block only; ``None`` values are skipped."""
        token = _fields.set(_merged(values))
        try:
            yield
        finally:
            _fields.reset(token)


log_context = LogContext()


class ContextFilter(logging.Filter):
    """Sets ``record.context`` once, on the thread that emitted the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = log_context.render()
        return True
