"""Step timings for service operations.

A ``@traced`` service method opens a root :class:`Span`; ``trace_span``
blocks inside it (discovery, port allocation, the identity-file poll)
hang child spans off it. Spans are only collected under ``--verbose``.
The finished tree is logged and copied into
``ServiceResult.meta["telemetry"]`` for the renderers.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from onionctl.services.result import ServiceResult

_enabled: ContextVar[bool] = ContextVar("onionctl_telemetry", default=False)
_current_span: ContextVar[Span | None] = ContextVar("onionctl_span", default=None)

log = structlog.get_logger("onionctl.telemetry")

_P = ParamSpec("_P")
_R = TypeVar("_R")


@dataclass
class Span:
    name: str
    children: list[Span] = field(default_factory=list)
    annotations: dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    @property
    def duration_ms(self) -> float:
        """Elapsed milliseconds; 0.0 while the span is still open."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) * 1000

    def child(self, name: str) -> Span:
        span = Span(name=name)
        self.children.append(span)
        return span

    def end(self) -> None:
        self.end_time = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        """Serialize the tree, omitting empty annotations and children."""
        data: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        if self.children:
            data["children"] = [span.to_dict() for span in self.children]
        return data


@contextmanager
def _activated(span: Span) -> Iterator[Span]:
    token = _current_span.set(span)
    try:
        yield span
    finally:
        span.end()
        _current_span.reset(token)


@contextmanager
def trace_span(name: str) -> Iterator[Span | None]:
    """Time a step of the running traced operation.

    Yields None when telemetry is off or no traced operation is running,
    so callers guard annotations with ``if span:``.
    """
    parent = get_current_span()
    if parent is None:
        yield None
        return
    with _activated(parent.child(name)) as span:
        yield span


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Collect a span tree for one service operation."""

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get():
            return func(*args, **kwargs)

        root = Span(name=func.__qualname__)
        try:
            with _activated(root):
                result = func(*args, **kwargs)
        except Exception as exc:
            log.debug(
                "operation.raised",
                span=root.name,
                duration_ms=round(root.duration_ms, 2),
                error=type(exc).__name__,
            )
            raise

        if not isinstance(result, ServiceResult):
            log.debug("operation.timed", span=root.name, duration_ms=round(root.duration_ms, 2))
            return result

        log.debug(
            "operation.timed",
            span=root.name,
            op=result.op,
            ok=result.ok,
            warnings=len(result.warnings),
            duration_ms=round(root.duration_ms, 2),
            steps=[child.name for child in root.children],
        )
        meta = dict(result.meta or {})
        meta["telemetry"] = root.to_dict()
        return result.model_copy(update={"meta": meta})  # type: ignore[return-value]

    return wrapper


def enable_telemetry() -> None:
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)


def get_current_span() -> Span | None:
    """The innermost open span, or None when telemetry is off."""
    if not _enabled.get():
        return None
    return _current_span.get()
