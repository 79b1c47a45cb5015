"""
Rush-Hour Simulation Script

Fires concurrent menu orders at the backend and walks them through the
kitchen lifecycle, so a staff dashboard (scripts/watch_dashboard.py) can be
watched updating in real time.

Run from project root: python scripts/simulate.py --orders 30 --lifecycle

Author: Khalil_Bannouri
Version: 4.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000")
TOTAL_ORDERS = 30
LIFECYCLE_STEPS = 4  # pending → accepted → preparing → ready → completed

# Sample menu (the real catalog is served by the front-end)
MENU_ITEMS = [
    {"id": "masala-chai", "name": "Masala Chai", "price": 30},
    {"id": "filter-coffee", "name": "Filter Coffee", "price": 40},
    {"id": "veg-sandwich", "name": "Veg Sandwich", "price": 90},
    {"id": "paneer-roll", "name": "Paneer Roll", "price": 120},
    {"id": "masala-dosa", "name": "Masala Dosa", "price": 110},
    {"id": "samosa", "name": "Samosa", "price": 25},
    {"id": "gulab-jamun", "name": "Gulab Jamun", "price": 60},
    {"id": "lassi", "name": "Sweet Lassi", "price": 70},
]


def generate_random_items() -> list[dict]:
    """Generate random cart contents."""
    picks = random.sample(MENU_ITEMS, k=random.randint(1, 4))
    return [dict(item, quantity=random.randint(1, 3)) for item in picks]


def generate_order_payload() -> dict[str, Any]:
    """Generate payload for POST /api/orders."""
    items = generate_random_items()
    total = sum(item["price"] * item["quantity"] for item in items)
    return {"items": items, "total": total}


# =============================================================================
# ORDER FLOWS
# =============================================================================

async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
) -> dict[str, Any]:
    """Submit one order."""
    start_time = time.time()

    try:
        response = await client.post("/api/orders", json=generate_order_payload(), timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            order = response.json()["order"]
            return {
                "order_num": order_num,
                "success": True,
                "order_id": order["orderId"],
                "total": order["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def walk_lifecycle(
    client: httpx.AsyncClient,
    order_id: int,
    clear: bool,
) -> bool:
    """Advance an order to completed, pausing like a real kitchen."""
    for _ in range(LIFECYCLE_STEPS):
        await asyncio.sleep(random.uniform(0.2, 1.5))
        response = await client.post(f"/api/orders/{order_id}/advance")
        if response.status_code != 200:
            print(f"   ⚠️ Order #{order_id}: {response.json().get('message')}")
            return False

    if clear:
        await asyncio.sleep(random.uniform(0.5, 2.0))
        response = await client.delete(f"/api/orders/{order_id}")
        return response.status_code == 200
    return True


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    lifecycle: bool = False,
    clear: bool = False,
) -> dict[str, Any]:
    """
    Run the rush-hour simulation.

    Args:
        num_orders: Number of orders to submit concurrently
        lifecycle: Advance every created order to completed
        clear: Delete orders once completed
    """
    print("=" * 70)
    print("🔥 RUSH-HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"🔧 Lifecycle: {lifecycle} (clear: {clear})")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient(base_url=API_BASE_URL) as client:
        results = await asyncio.gather(*[send_order(client, i + 1) for i in range(num_orders)])

        successful = [r for r in results if r["success"]]
        completed = 0
        if lifecycle and successful:
            print("\n👨‍🍳 Kitchen is working through the orders...\n")
            outcomes = await asyncio.gather(*[
                walk_lifecycle(client, r["order_id"], clear) for r in successful
            ])
            completed = sum(1 for ok in outcomes if ok)

    total_time = round(time.time() - start_time, 2)
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    if lifecycle:
        print(f"🍽️  Completed Lifecycles: {completed}/{len(successful)}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        ids = sorted(r["order_id"] for r in successful)
        print(f"\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Order ids: #{ids[0]} … #{ids[-1]}")
        if len(set(ids)) != len(ids):
            print(f"   ⚠️ Duplicate order ids detected!")
        print(f"   💰 Total Revenue: ₹{sum(r['total'] for r in successful):.2f}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order {f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "completed": completed,
        "total_time": total_time,
    }


async def preflight() -> bool:
    """Check the backend before the rush."""
    async with httpx.AsyncClient(base_url=API_BASE_URL) as client:
        try:
            response = await client.get("/health")
        except httpx.HTTPError as e:
            print(f"   ❌ Backend unreachable: {e}")
            return False

        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Store: {data.get('storeMode')}")
        print(f"   Dashboards online: {data.get('subscribers')}")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush-Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--lifecycle", action="store_true", help="Advance orders to completed")
    parser.add_argument("--clear", action="store_true", help="Delete orders after completion")
    args = parser.parse_args()

    if not asyncio.run(preflight()):
        sys.exit(1)

    asyncio.run(run_simulation(args.orders, lifecycle=args.lifecycle, clear=args.clear))
