"""Example: run the checkout flow on both devices and print live progress.

Serve a site at the configured ``baseUrl`` first, then:

    python examples/shop_demo/run_checkout.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from tsty import FlowExecutionError, Tsty

PROJECT_ROOT = Path(__file__).resolve().parent
FLOW_ID = "checkout/guest-to-order"


async def main() -> None:
    """Run the checkout flow on desktop and mobile."""
    async with Tsty(project_root=PROJECT_ROOT, fail_fast=True) as tsty:
        print(f"Flows: {', '.join(await tsty.list_flows())}")

        check = await tsty.validate("action", "add-to-cart", ["auth/login"])
        if not check.valid:
            print(f"Action dependencies are broken: {check.errors}")
            sys.exit(1)

        for device in ("desktop", "mobile"):
            print(f"\n{FLOW_ID} on {device}")
            async for update in tsty.stream(FLOW_ID, device):
                if update.type == "step-complete":
                    icon = "✓" if update.data["passed"] else "✗"
                    print(f"  {icon} {update.data['stepName']}")
                elif update.type in ("early-stop", "error"):
                    print(f"  ■ {update.data.get('reason') or update.data.get('error')}")

        try:
            result = await tsty.run(FLOW_ID)
            print(f"\nRun {result.run_id}: {result.passed}/{result.total_steps} steps passed")
        except FlowExecutionError as exc:
            print(f"\n{exc}")


if __name__ == "__main__":
    asyncio.run(main())
