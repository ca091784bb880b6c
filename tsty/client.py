"""Tsty client — run flows locally or via a remote Tsty API server."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from tsty.exceptions import (
    ConnectionError,
    FlowExecutionError,
    FlowNotFoundError,
    InvalidFlowError,
    TimeoutError,
    TstyClientError,
)
from tsty.models import FlowInfo, ProgressUpdate, RunResult, Validation


class Tsty:
    """Tsty client — run flows locally or via a remote server.

    Use ``project_root`` for local mode (embeds TstyEngine, runs Playwright
    locally) or ``server`` for remote mode (talks to the Tsty HTTP API).
    """

    def __init__(
        self,
        *,
        project_root: str | Path | None = None,
        server: str | None = None,
        headless: bool = True,
        fail_fast: bool | None = None,
        timeout: float = 300.0,
    ) -> None:
        if not project_root and not server:
            raise TstyClientError("Provide either project_root (local) or server (remote)")
        if project_root and server:
            raise TstyClientError("Provide project_root or server, not both")

        self._project_root = Path(project_root) if project_root else None
        self._server = server.rstrip("/") if server else None
        self._headless = headless
        self._fail_fast = fail_fast
        self._timeout = timeout

        # Local mode state
        self._engine: Any = None

        # Remote mode state
        self._http: httpx.AsyncClient | None = None

    # --- Lifecycle ---

    async def start(self) -> None:
        """Initialize the client (start engine or HTTP session)."""
        if self._project_root:
            await self._start_local()
        else:
            self._http = httpx.AsyncClient(base_url=self._server, timeout=self._timeout)

    async def stop(self) -> None:
        """Shut down the client."""
        if self._engine:
            await self._engine.stop()
            self._engine = None
        if self._http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> Tsty:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    # --- Public API ---

    async def list_flows(self) -> list[str]:
        """List all available flow IDs."""
        if self._engine:
            return list(self._engine.list_flows())
        resp = await self._request("GET", "/api/flows")
        return [f["id"] for f in resp.json()]

    async def get_flow(self, flow_id: str) -> FlowInfo:
        """Get metadata for a specific flow."""
        if self._engine:
            return self._local_get_flow(flow_id)
        resp = await self._request("GET", f"/api/flows/{quote(flow_id, safe='/')}")
        data = resp.json()
        return FlowInfo(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            step_count=len(data.get("steps", [])),
            devices=data.get("devices", []),
            tags=data.get("tags", []),
            dependencies=data.get("dependencies", []),
        )

    async def run(self, flow_id: str, device: str = "desktop") -> RunResult:
        """Run a flow; raise FlowExecutionError unless every step passed."""
        result = await self.run_full(flow_id, device)
        if not result.ok:
            raise FlowExecutionError(flow_id, _failure_detail(result))
        return result

    async def run_full(self, flow_id: str, device: str = "desktop") -> RunResult:
        """Run a flow and return its result, passed or not."""
        if self._engine:
            return await self._local_run(flow_id, device)
        resp = await self._request(
            "POST", "/api/run", json={"flowId": flow_id, "device": device}
        )
        return RunResult.model_validate(resp.json())

    async def stream(self, flow_id: str, device: str = "desktop") -> AsyncIterator[ProgressUpdate]:
        """Run a flow, yielding progress events as they happen."""
        source = self._local_stream(flow_id, device) if self._engine else self._remote_stream(flow_id, device)
        async with aclosing(source) as updates:
            async for update in updates:
                yield update

    async def validate(self, kind: str, entity_id: str, dependencies: list[str]) -> Validation:
        """Check a candidate dependency list for a flow or an action."""
        if self._engine:
            result = self._engine.validate_dependencies(entity_id, dependencies, kind=kind)
            return Validation.model_validate(result.model_dump(by_alias=True))
        resp = await self._request(
            "POST",
            "/api/validate",
            json={"type": kind, "id": entity_id, "dependencies": dependencies},
        )
        return Validation.model_validate(resp.json())

    # --- Local mode ---

    async def _start_local(self) -> None:
        """Start the embedded TstyEngine."""
        from tstyengine.engine import TstyEngine

        self._engine = TstyEngine(
            project_root=self._project_root,
            headless=self._headless,
            fail_fast=self._fail_fast,
        )
        await self._engine.start()

    def _local_get_flow(self, flow_id: str) -> FlowInfo:
        from tstyengine.exceptions import FlowNotFoundError as EngineFlowNotFound

        try:
            flow = self._engine.get_flow(flow_id)
        except EngineFlowNotFound:
            raise FlowNotFoundError(flow_id)
        return FlowInfo(
            id=flow_id,
            name=flow.name,
            description=flow.description,
            step_count=len(flow.steps),
            devices=[d.value for d in flow.devices],
            tags=flow.tags,
            dependencies=flow.dependencies,
        )

    async def _local_run(
        self, flow_id: str, device: str, emitter: Any = None
    ) -> RunResult:
        from tstyengine.exceptions import ConfigurationError, DependencyError
        from tstyengine.exceptions import FlowNotFoundError as EngineFlowNotFound

        try:
            report = await asyncio.wait_for(
                self._engine.run_flow(flow_id, device, emitter=emitter),
                timeout=self._timeout,
            )
        except EngineFlowNotFound:
            raise FlowNotFoundError(flow_id)
        except (ConfigurationError, DependencyError) as exc:
            raise InvalidFlowError(flow_id, str(exc))
        except asyncio.TimeoutError:
            raise TimeoutError(f"Flow '{flow_id}' did not complete within {self._timeout}s")
        return RunResult.model_validate(report.model_dump(mode="json", by_alias=True))

    async def _local_stream(self, flow_id: str, device: str) -> AsyncIterator[ProgressUpdate]:
        from tstyengine.progress import QueueEmitter

        emitter = QueueEmitter()

        async def execute() -> None:
            try:
                await self._local_run(flow_id, device, emitter=emitter)
            finally:
                await emitter.close()

        task = asyncio.create_task(execute())
        try:
            async for event in emitter:
                yield ProgressUpdate(type=event.type.value, timestamp=event.timestamp, data=event.data)
        finally:
            # Consumer stopped early: the run must not outlive the stream.
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
            except (FlowNotFoundError, InvalidFlowError):
                # Already delivered as an error event.
                pass

    # --- Remote mode ---

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Make an HTTP request with error handling."""
        assert self._http is not None
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.ConnectError as exc:
            raise ConnectionError(self._server, str(exc))
        except httpx.TimeoutException:
            raise TimeoutError(f"Request to {self._server}{path} timed out")
        _raise_for_status(resp, path)
        return resp

    async def _remote_stream(self, flow_id: str, device: str) -> AsyncIterator[ProgressUpdate]:
        assert self._http is not None
        path = "/api/run/stream"
        try:
            async with self._http.stream(
                "GET", path, params={"flowId": flow_id, "device": device}
            ) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    _raise_for_status(resp, path)
                async for line in resp.aiter_lines():
                    if line.startswith("data: "):
                        yield ProgressUpdate.model_validate_json(line[len("data: "):])
        except httpx.ConnectError as exc:
            raise ConnectionError(self._server, str(exc))
        except httpx.TimeoutException:
            raise TimeoutError(f"Stream for '{flow_id}' timed out")


def _raise_for_status(resp: httpx.Response, path: str) -> None:
    if resp.status_code == 404:
        raise FlowNotFoundError(path.split("/api/", 1)[-1])
    if resp.status_code == 422:
        raise InvalidFlowError(path, _detail(resp))
    if resp.status_code >= 400:
        raise TstyClientError(f"Server error {resp.status_code}: {_detail(resp)}")


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return resp.text


def _failure_detail(result: RunResult) -> str:
    if result.error:
        return result.error
    if result.stop_reason:
        return result.stop_reason
    failed = [s for s in result.steps if not s.passed]
    if failed:
        return f"step '{failed[0].name}' failed: {failed[0].error or 'unknown error'}"
    return f"run ended {result.status}"
