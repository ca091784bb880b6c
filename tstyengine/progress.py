"""Run progress events and the sinks that deliver them."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from tstyengine.logger import get_logger
from tstyengine.models import (
    ProgressEvent,
    ProgressEventType,
    RunReport,
    StepResult,
)

log = get_logger(__name__)

SSE_KEEPALIVE = ": connected\n\n"


def sse_frame(event: ProgressEvent) -> str:
    """Server-Sent-Events frame for one event."""
    return f"data: {event.to_wire()}\n\n"


# --- Event constructors ---


def start_event(flow_id: str, flow: str, device: str, total_steps: int) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.START,
        data={"flowId": flow_id, "flow": flow, "device": device, "totalSteps": total_steps},
    )


def step_start_event(index: int, name: str, total_steps: int) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.STEP_START,
        data={"stepIndex": index, "stepName": name, "totalSteps": total_steps},
    )


def step_complete_event(index: int, result: StepResult) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.STEP_COMPLETE,
        data={
            "stepIndex": index,
            "stepName": result.name,
            "passed": result.passed,
            "result": result.model_dump(mode="json", by_alias=True),
        },
    )


def early_stop_event(reason: str, index: int) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.EARLY_STOP,
        data={"reason": reason, "stepIndex": index},
    )


def complete_event(report: RunReport, report_id: str | None) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.COMPLETE,
        data={
            "reportId": report_id,
            "report": report.model_dump(mode="json", by_alias=True),
        },
    )


def error_event(error: str | BaseException, **extra: Any) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.ERROR,
        data={"error": str(error), **extra},
    )


# --- Emitters ---


class ProgressEmitter:
    """Base sink. ``emit`` never raises; subclasses implement ``send``."""

    async def emit(self, event: ProgressEvent) -> None:
        try:
            await self.send(event)
        except Exception as exc:
            log.warning(
                "progress_emit_failed",
                event_type=event.type.value,
                emitter=type(self).__name__,
                error=str(exc),
            )

    async def send(self, event: ProgressEvent) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Signal that no more events follow."""


class NullEmitter(ProgressEmitter):
    async def send(self, event: ProgressEvent) -> None:
        return None


class LogEmitter(ProgressEmitter):
    """Writes each event to the structured log."""

    async def send(self, event: ProgressEvent) -> None:
        log.info("run_progress", event_type=event.type.value, **_summary(event))


class CallbackEmitter(ProgressEmitter):
    """Forwards events to a plain or async callable."""

    def __init__(self, callback: Callable[[ProgressEvent], Awaitable[None] | None]) -> None:
        self.callback = callback

    async def send(self, event: ProgressEvent) -> None:
        result = self.callback(event)
        if inspect.isawaitable(result):
            await result


class QueueEmitter(ProgressEmitter):
    """Buffers events on an asyncio queue; iterate it to consume them.

    Iteration ends after ``close()``.
    """

    _DONE = object()

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    async def send(self, event: ProgressEvent) -> None:
        if self.closed:
            raise RuntimeError("emitter is closed")
        await self.queue.put(event)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self.queue.put(self._DONE)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self.queue.get()
            if item is self._DONE:
                return
            yield item


class MultiEmitter(ProgressEmitter):
    """Fans one event out to several sinks; one failing does not starve the rest."""

    def __init__(self, *emitters: ProgressEmitter) -> None:
        self.emitters = list(emitters)

    async def send(self, event: ProgressEvent) -> None:
        for emitter in self.emitters:
            await emitter.emit(event)

    async def close(self) -> None:
        for emitter in self.emitters:
            await emitter.close()


def _summary(event: ProgressEvent) -> dict[str, Any]:
    data = event.data
    keys = ("flowId", "stepIndex", "stepName", "passed", "reason", "reportId", "error")
    return {k: data[k] for k in keys if k in data}
