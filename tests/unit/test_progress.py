"""Tests for progress events and emitters."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from tstyengine.models import Device, ProgressEventType, StepResult
from tstyengine.progress import (
    SSE_KEEPALIVE,
    CallbackEmitter,
    LogEmitter,
    MultiEmitter,
    NullEmitter,
    ProgressEmitter,
    QueueEmitter,
    complete_event,
    early_stop_event,
    error_event,
    sse_frame,
    start_event,
    step_complete_event,
    step_start_event,
)
from tstyengine.report import new_report


class _Broken(ProgressEmitter):
    async def send(self, event) -> None:
        raise RuntimeError("client went away")


class TestEvents:
    def test_start(self) -> None:
        event = start_event("shop/checkout", "Checkout", "desktop", 3)
        assert event.type == ProgressEventType.START
        assert event.data == {
            "flowId": "shop/checkout",
            "flow": "Checkout",
            "device": "desktop",
            "totalSteps": 3,
        }

    def test_step_start(self) -> None:
        event = step_start_event(0, "Open shop", 3)
        assert event.data["stepIndex"] == 0
        assert event.data["stepName"] == "Open shop"

    def test_step_complete_carries_result(self) -> None:
        result = StepResult(name="Pay", passed=False, errors=["declined"])
        event = step_complete_event(2, result)
        assert event.data["passed"] is False
        assert event.data["result"]["error"] == "declined"
        assert event.data["result"]["consoleErrors"] == 0

    def test_early_stop(self) -> None:
        event = early_stop_event("Step failed", 1)
        assert event.type == ProgressEventType.EARLY_STOP
        assert event.data == {"reason": "Step failed", "stepIndex": 1}

    def test_complete(self) -> None:
        report = new_report("checkout", "Checkout", Device.DESKTOP, planned_steps=2)
        event = complete_event(report, "flow-checkout-1")
        assert event.data["reportId"] == "flow-checkout-1"
        assert event.data["report"]["flowId"] == "checkout"

    def test_error_from_exception(self) -> None:
        event = error_event(ValueError("bad"), flowId="x")
        assert event.data == {"error": "bad", "flowId": "x"}

    def test_sse_frame(self) -> None:
        frame = sse_frame(step_start_event(0, "s", 1))
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):])["type"] == "step-start"
        assert SSE_KEEPALIVE.startswith(":")


class TestEmitters:
    async def test_null(self) -> None:
        await NullEmitter().emit(step_start_event(0, "s", 1))

    async def test_log_emitter(self) -> None:
        await LogEmitter().emit(error_event("boom"))

    async def test_sync_callback(self) -> None:
        callback = MagicMock(return_value=None)
        event = step_start_event(0, "s", 1)
        await CallbackEmitter(callback).emit(event)
        callback.assert_called_once_with(event)

    async def test_async_callback(self) -> None:
        callback = AsyncMock()
        event = step_start_event(0, "s", 1)
        await CallbackEmitter(callback).emit(event)
        callback.assert_awaited_once_with(event)

    async def test_emit_swallows_sink_errors(self) -> None:
        await _Broken().emit(step_start_event(0, "s", 1))

    async def test_multi_isolates_failures(self) -> None:
        queue = QueueEmitter()
        multi = MultiEmitter(_Broken(), queue)
        await multi.emit(step_start_event(0, "s", 1))
        await multi.close()
        events = [e async for e in queue]
        assert len(events) == 1


class TestQueueEmitter:
    async def test_iterates_until_closed(self) -> None:
        emitter = QueueEmitter()

        async def produce() -> None:
            for i in range(3):
                await emitter.emit(step_start_event(i, f"s{i}", 3))
            await emitter.close()

        task = asyncio.create_task(produce())
        received = [e.data["stepIndex"] async for e in emitter]
        await task
        assert received == [0, 1, 2]

    async def test_emit_after_close_is_dropped(self) -> None:
        emitter = QueueEmitter()
        await emitter.close()
        await emitter.emit(step_start_event(0, "s", 1))
        assert [e async for e in emitter] == []

    async def test_close_is_idempotent(self) -> None:
        emitter = QueueEmitter()
        await emitter.close()
        await emitter.close()
        assert emitter.queue.qsize() == 1
