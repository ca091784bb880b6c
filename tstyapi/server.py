"""Tsty API server — FastAPI app for browsing flows and running them.

Runs share one engine (and one browser process); each run gets its own
browser context. Progress is streamed to clients as Server-Sent Events.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from tstyengine.engine import TstyEngine
from tstyengine.exceptions import (
    ConfigurationError,
    DependencyError,
    FlowNotFoundError,
    TstyError,
)
from tstyengine.logger import get_logger
from tstyengine.models import CamelModel, Device
from tstyengine.progress import (
    SSE_KEEPALIVE,
    LogEmitter,
    MultiEmitter,
    QueueEmitter,
    error_event,
    sse_frame,
)

log = get_logger(__name__)

# --- Engine state ---

_engine: TstyEngine | None = None
_run_tasks: set[asyncio.Task[None]] = set()


def get_engine() -> TstyEngine:
    """The shared engine, created from ``QA_PROJECT_ROOT`` on first use."""
    global _engine
    if _engine is None:
        _engine = TstyEngine(project_root=os.environ.get("QA_PROJECT_ROOT"))
    return _engine


def set_engine(engine: TstyEngine | None) -> None:
    """Replace the shared engine (embedding and tests)."""
    global _engine
    _engine = engine


# --- App lifecycle ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the browser on shutdown."""
    yield
    for task in list(_run_tasks):
        task.cancel()
    _run_tasks.clear()
    if _engine is not None:
        await _engine.stop()


app = FastAPI(title="Tsty", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request models ---


class RunRequest(CamelModel):
    flow_id: str
    device: Device = Device.DESKTOP


class ValidateRequest(BaseModel):
    type: str = Field(pattern="^(flow|action)$")
    id: str
    dependencies: list[str]


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _http_error(exc: TstyError) -> HTTPException:
    if isinstance(exc, FlowNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (ConfigurationError, DependencyError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# --- Flows ---


@app.get("/api/flows")
async def list_flows() -> list[dict[str, Any]]:
    """List all available flows."""
    flows = get_engine().list_flows()
    return [
        {
            "id": flow_id,
            "name": flow.name,
            "description": flow.description,
            "tags": flow.tags,
            "devices": [d.value for d in flow.devices],
            "dependencies": flow.dependencies,
            "stepCount": len(flow.steps),
        }
        for flow_id, flow in flows.items()
    ]


@app.get("/api/flows/{flow_id:path}")
async def get_flow(flow_id: str) -> dict[str, Any]:
    """Get a single flow's full definition."""
    try:
        flow = get_engine().get_flow(flow_id)
    except TstyError as exc:
        raise _http_error(exc)
    return {"id": flow_id, **_dump(flow)}


# --- Actions ---


@app.get("/api/actions")
async def list_actions() -> list[dict[str, Any]]:
    """List all action definitions."""
    actions = get_engine().list_actions()
    return [
        {
            "id": action_id,
            "type": action.type.value,
            "description": action.description,
            "category": action.category,
            "tags": action.tags,
            "dependencies": action.dependencies,
            "primitiveCount": len(action.primitives),
        }
        for action_id, action in actions.items()
    ]


@app.get("/api/actions/{action_id:path}")
async def get_action(action_id: str) -> dict[str, Any]:
    """Get one action, with its fully expanded primitive list when it resolves."""
    engine = get_engine()
    try:
        action = engine.get_action(action_id)
    except TstyError as exc:
        raise _http_error(exc)
    if action is None:
        raise HTTPException(status_code=404, detail=f"Action '{action_id}' not found")
    body: dict[str, Any] = {"id": action_id, **_dump(action)}
    try:
        body["resolved"] = [_dump(p) for p in engine.resolve_action(action_id)]
    except DependencyError as exc:
        body["resolved"] = None
        body["resolveError"] = str(exc)
    return body


@app.get("/api/usage/actions/{action_id:path}")
async def action_usage(action_id: str) -> dict[str, Any]:
    """Flows and actions that use an action, directly or transitively."""
    engine = get_engine()
    if engine.get_action(action_id) is None:
        raise HTTPException(status_code=404, detail=f"Action '{action_id}' not found")
    return {"id": action_id, **engine.action_usage(action_id)}


# --- Validation ---


@app.post("/api/validate")
async def validate_dependencies(req: ValidateRequest) -> dict[str, Any]:
    """Check a candidate dependency list before it is saved."""
    result = get_engine().validate_dependencies(req.id, req.dependencies, kind=req.type)
    return _dump(result)


# --- Runs ---


@app.post("/api/run")
async def run_flow(req: RunRequest) -> dict[str, Any]:
    """Run a flow to completion and return its report."""
    try:
        report = await get_engine().run_flow(req.flow_id, req.device, emitter=LogEmitter())
    except TstyError as exc:
        raise _http_error(exc)
    return _dump(report)


async def _run_into(emitter: QueueEmitter, flow_id: str, device: str) -> None:
    """Background run feeding ``emitter``; survives the client going away."""
    sink = MultiEmitter(emitter, LogEmitter())
    try:
        await get_engine().run_flow(flow_id, device, emitter=sink)
    except TstyError as exc:
        # The engine has already emitted the error event.
        log.info("stream_run_rejected", flow_id=flow_id, error=str(exc))
    except Exception as exc:
        log.error("stream_run_error", flow_id=flow_id, error=str(exc))
        await sink.emit(error_event(exc, flowId=flow_id))
    finally:
        await sink.close()


@app.get("/api/run/stream")
async def run_stream(
    flow_id: str = Query(alias="flowId"),
    device: str = Query(default="desktop"),
) -> StreamingResponse:
    """Run a flow and stream its progress as Server-Sent Events."""
    emitter = QueueEmitter()
    task = asyncio.create_task(_run_into(emitter, flow_id, device))
    _run_tasks.add(task)
    task.add_done_callback(_run_tasks.discard)
    log.info("stream_run_started", flow_id=flow_id, device=device)

    async def frames():
        yield SSE_KEEPALIVE
        async for event in emitter:
            yield sse_frame(event)

    return StreamingResponse(
        frames(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# --- Reports ---


@app.get("/api/reports")
async def list_reports(flow_id: str | None = Query(default=None, alias="flowId")) -> list[dict[str, Any]]:
    """Report summaries, newest first."""
    return [_dump(s) for s in get_engine().list_reports(flow_id)]


@app.get("/api/reports/{report_id:path}")
async def get_report(report_id: str) -> dict[str, Any]:
    """A stored run report."""
    try:
        report = get_engine().get_report(report_id)
    except TstyError as exc:
        raise _http_error(exc)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report '{report_id}' not found")
    return {"id": report_id, **_dump(report)}


def main() -> None:
    """Run the API server."""
    port = int(os.environ.get("TSTY_PORT", "8002"))
    uvicorn.run(app, host="0.0.0.0", port=port, loop="asyncio")


if __name__ == "__main__":
    main()
