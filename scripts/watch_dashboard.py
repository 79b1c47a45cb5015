"""
Dashboard Watch Script

Runs a staff dashboard client against the order channel and prints the
order board every time it changes.

Run from project root: python scripts/watch_dashboard.py

Author: Khalil_Bannouri
Version: 4.0.0
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from app.core.config import get_settings, setup_logging
from app.dashboard import DashboardClient, DashboardState


def print_board(state: DashboardState) -> None:
    """Print counts and the active queue."""
    counts = " │ ".join(f"{status}: {n}" for status, n in state.counts.items())
    print("\n" + "=" * 70)
    print(f"📋 {state.total_orders} orders │ {counts}")
    print("-" * 70)
    for order in state.active_orders[:10]:
        items = ", ".join(f"{i.quantity}x {i.name}" for i in order.items)
        print(f"   #{order.order_id:<5} {order.status.value:<10} ₹{order.total:<8.2f} {items[:40]}")
    if not state.active_orders:
        print("   No active orders")
    print("=" * 70)


async def main(ws_url: str) -> None:
    client = DashboardClient(ws_url=ws_url, state=DashboardState(on_change=print_board))
    try:
        await client.run()
    finally:
        await client.stop()


if __name__ == "__main__":
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Watch the staff order board")
    parser.add_argument("--url", default=settings.dashboard_ws_url, help="Order channel URL")
    args = parser.parse_args()

    setup_logging()
    try:
        asyncio.run(main(args.url))
    except KeyboardInterrupt:
        print("\n👋 Bye")
