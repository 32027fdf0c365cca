"""
Checkout Load Simulation

Fires many concurrent cart checkouts at a running API to exercise order
submission, pricing and the notification bus under load.
Run from project root: python scripts/simulate.py --orders 50

Author: Your Name
Version: 1.0.0
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bistro.services.cart import Cart

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8000"
TOTAL_ORDERS = 50

STREETS = ["Main St", "Broadway", "5th Avenue", "Park Ave", "Madison Ave", "Lexington Ave"]


def build_cart(menu: list[dict[str, Any]]) -> Cart:
    """A random cart over the live menu."""
    cart = Cart()
    for item in random.sample(menu, k=random.randint(1, min(3, len(menu)))):
        cart.add_item(item)
        cart.update_quantity(item["id"], random.randint(1, 3))

    if random.random() < 0.3:
        cart.set_delivery_method("pickup")
    else:
        cart.set_delivery_address(f"{random.randint(1, 999)} {random.choice(STREETS)}")
    cart.set_payment_method(random.choice(["cash", "paypal"]))
    return cart


async def login(client: httpx.AsyncClient, username: str, password: str) -> bool:
    response = await client.post(
        "/api/auth/login",
        json={"username": username, "password": password},
    )
    return response.status_code == 200


async def send_checkout(
    client: httpx.AsyncClient,
    menu: list[dict[str, Any]],
    order_num: int,
) -> dict[str, Any]:
    """Submit one cart and compare the server total with the local one."""
    cart = build_cart(menu)
    payload = cart.to_order_draft().model_dump(mode="json", by_alias=True)
    start_time = time.time()

    try:
        response = await client.post("/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data.get("id"),
                "total": data.get("total"),
                "matches_cart": abs(data.get("total", 0) - float(cart.total)) < 0.005,
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    username: str = "admin",
    password: str = "adminpass",
) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 CHECKOUT SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient(base_url=API_BASE_URL) as client:
        if not await login(client, username, password):
            print(f"\n❌ Login failed for '{username}'")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        menu = (await client.get("/api/menu-items")).json()
        menu = [item for item in menu if item.get("available", True)]
        if not menu:
            print("\n❌ No available menu items to order")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        start_time = time.time()
        tasks = [send_checkout(client, menu, i + 1) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)
        total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    mismatched = [r for r in successful if not r["matches_cart"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⚖️  Totals differing from cart: {len(mismatched)}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total") or 0 for r in successful)
        print(f"\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: ${total_revenue:.2f}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 NEXT STEPS")
    print("=" * 70)
    print("1. POST /api/reports/orders to queue the Excel export")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


def main():
    global API_BASE_URL

    parser = argparse.ArgumentParser(description="Concurrent checkout simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    parser.add_argument("--username", default="admin")
    parser.add_argument("--password", default="adminpass")
    args = parser.parse_args()

    API_BASE_URL = args.url
    asyncio.run(run_simulation(args.orders, args.username, args.password))


if __name__ == "__main__":
    main()
