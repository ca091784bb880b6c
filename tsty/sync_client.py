"""Synchronous wrapper around Tsty for scripts."""

from __future__ import annotations

import asyncio
from typing import Any

from tsty.client import Tsty
from tsty.models import FlowInfo, ProgressUpdate, RunResult, Validation


class TstySync:
    """Synchronous wrapper around Tsty for use in scripts.

    All calls run on one private event loop owned by this object.
    """

    def __init__(self, **kwargs: Any) -> None:
        self._kwargs = kwargs
        self._client: Tsty | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._start()

    def _start(self) -> None:
        """Create event loop and start the async client."""
        self._loop = asyncio.new_event_loop()
        self._client = Tsty(**self._kwargs)
        self._loop.run_until_complete(self._client.start())

    def _run(self, coro: Any) -> Any:
        """Run a coroutine on the internal event loop."""
        assert self._loop is not None
        return self._loop.run_until_complete(coro)

    def list_flows(self) -> list[str]:
        """List all available flow IDs."""
        return self._run(self._client.list_flows())

    def get_flow(self, flow_id: str) -> FlowInfo:
        """Get metadata for a specific flow."""
        return self._run(self._client.get_flow(flow_id))

    def run(self, flow_id: str, device: str = "desktop") -> RunResult:
        """Run a flow; raise FlowExecutionError unless every step passed."""
        return self._run(self._client.run(flow_id, device))

    def run_full(self, flow_id: str, device: str = "desktop") -> RunResult:
        """Run a flow and return its result, passed or not."""
        return self._run(self._client.run_full(flow_id, device))

    def stream(self, flow_id: str, device: str = "desktop") -> list[ProgressUpdate]:
        """Run a flow and return every progress event once it has finished."""

        async def collect() -> list[ProgressUpdate]:
            return [update async for update in self._client.stream(flow_id, device)]

        return self._run(collect())

    def validate(self, kind: str, entity_id: str, dependencies: list[str]) -> Validation:
        """Check a candidate dependency list for a flow or an action."""
        return self._run(self._client.validate(kind, entity_id, dependencies))

    def close(self) -> None:
        """Shut down the client and event loop."""
        if self._client and self._loop:
            self._loop.run_until_complete(self._client.stop())
            self._loop.close()
            self._loop = None
            self._client = None

    def __enter__(self) -> TstySync:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
