#!/usr/bin/env python3
"""Interactive flow runner — run a flow with a visible browser and live progress."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tstyengine import CallbackEmitter, Flow, ProgressEvent, TstyEngine
from tstyengine.config import load_settings


def pick_flow(flows: dict[str, Flow]) -> str:
    """Let the user choose a flow from the list."""
    ids = sorted(flows)
    print("\nAvailable flows:")
    for i, flow_id in enumerate(ids, 1):
        flow = flows[flow_id]
        print(f"  {i}. {flow_id}  — {flow.name} ({len(flow.steps)} steps)")

    while True:
        choice = input(f"\nSelect flow [1-{len(ids)}]: ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(ids):
            return ids[int(choice) - 1]
        print("Invalid choice, try again.")


def pick_device() -> str:
    value = input("Device [desktop/mobile] (Enter for desktop): ").strip().lower()
    return value or "desktop"


def show_progress(event: ProgressEvent) -> None:
    data = event.data
    kind = event.type.value
    if kind == "start":
        print(f"▶ {data['flow']} on {data['device']} ({data['totalSteps']} steps)")
    elif kind == "step-start":
        print(f"  … {data['stepIndex'] + 1}. {data['stepName']}")
    elif kind == "step-complete":
        icon = "✓" if data["passed"] else "✗"
        duration = data["result"].get("durationMs") or 0
        print(f"  {icon} {data['stepIndex'] + 1}. {data['stepName']} {duration:.0f}ms")
        for error in data["result"].get("errors", []):
            print(f"      Error: {error}")
    elif kind == "early-stop":
        print(f"  ■ Stopped early: {data['reason']}")
    elif kind == "error":
        print(f"  ✗ {data['error']}")


async def run(project_root: Path, flow_id: str, device: str) -> None:
    """Execute the flow with a visible browser."""
    print(f"\n▶ Running flow: {flow_id}")
    print(f"  Project:      {project_root}")
    print(f"  Device:       {device}")
    print("  Browser:      visible (headless=False)")
    print()

    async with TstyEngine(project_root=project_root, headless=False) as engine:
        try:
            report = await engine.run_flow(
                flow_id, device, emitter=CallbackEmitter(show_progress)
            )

            print(f"\n{'='*60}")
            print(f"  Status:   {report.status.value}")
            print(f"  Passed:   {report.passed}/{report.total_steps}")
            print(f"  Duration: {report.duration or 0:.0f}ms")
            if report.screenshot_dir:
                print(f"  Screenshots: {report.screenshot_dir}")
            print(f"{'='*60}")

        except Exception as exc:
            print(f"\n✗ Flow failed: {exc}")

        input("\nPress Enter to close the browser...")


def main() -> None:
    project_root = Path(sys.argv[1]) if len(sys.argv) > 1 else Path.cwd()
    settings = load_settings(project_root)
    flows = TstyEngine(settings=settings).list_flows()
    if not flows:
        print(f"No flows found in {settings.path(settings.flows_dir)}")
        sys.exit(1)

    flow_id = pick_flow(flows)
    device = pick_device()
    asyncio.run(run(project_root, flow_id, device))


if __name__ == "__main__":
    main()
