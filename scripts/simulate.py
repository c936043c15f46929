"""
Rush-Hour Simulation Script

Fires concurrent orders at a running MenuQR API to exercise order
creation and the Celery ledger export under load.
Run from project root: python scripts/simulate.py --orders 50

Requires a menu dated today (or any menu, used as fallback) with dishes.
"""

import argparse
import asyncio
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

API_BASE_URL = "http://localhost:5000"
TOTAL_ORDERS = 50
TABLES = 12

STREETS = ["Main St", "Broadway", "Park Ave", "Station Rd", "High St", "Church Ln"]


def dishes_of(menu: dict[str, Any]) -> list[dict[str, Any]]:
    return [dish for section in menu["sections"] for dish in section["dishes"]]


def generate_random_lines(dishes: list[dict[str, Any]]) -> list[dict[str, int]]:
    """1-4 distinct dishes, 1-3 of each."""
    picked = random.sample(dishes, k=min(len(dishes), random.randint(1, 4)))
    return [{"dish_id": d["id"], "quantity": random.randint(1, 3)} for d in picked]


async def create_clients(client: httpx.AsyncClient) -> list[tuple[int, str]]:
    """A few tables plus a few delivery customers."""
    clients = []
    for table_number in range(1, TABLES + 1):
        response = await client.post(
            f"{API_BASE_URL}/api/order/clients/internal/add",
            json={"table_number": table_number},
        )
        response.raise_for_status()
        clients.append((response.json()["client_id"], "internal"))

    for _ in range(TABLES // 3):
        response = await client.post(
            f"{API_BASE_URL}/api/order/clients/external/add",
            json={"address": f"{random.randint(1, 999)} {random.choice(STREETS)}"},
        )
        response.raise_for_status()
        clients.append((response.json()["client_id"], "external"))
    return clients


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    menu: dict[str, Any],
    clients: list[tuple[int, str]],
) -> dict[str, Any]:
    client_id, client_type = random.choice(clients)
    payload = {
        "menu_id": menu["id"],
        "client_id": client_id,
        "client_type": client_type,
        "dishes": generate_random_lines(dishes_of(menu)),
    }
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/order/add", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)
        if response.status_code == 201:
            return {
                "order_num": order_num,
                "success": True,
                "order_id": response.json().get("order_id"),
                "client_type": client_type,
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "client_type": client_type,
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "client_type": client_type,
            "time": round(time.time() - start_time, 3),
        }


async def preflight(client: httpx.AsyncClient) -> dict[str, Any]:
    """Health check and current menu; raises when the API is not usable."""
    print("\n1. Health Check...")
    response = await client.get(f"{API_BASE_URL}/health")
    response.raise_for_status()
    health = response.json()
    print(f"   Status: {health.get('status')}")
    print(f"   Database: {health.get('database')}")
    print(f"   Redis: {health.get('redis')}")

    print("\n2. Current Menu...")
    response = await client.get(f"{API_BASE_URL}/api/menu/current")
    response.raise_for_status()
    menu = response.json()
    print(f"   Menu #{menu['id']} {menu['name']} ({menu['date']}), {len(dishes_of(menu))} dishes")
    if menu["meta"]["is_fallback"]:
        print("   No menu dated today, using the most recent one")
    if not dishes_of(menu):
        raise RuntimeError("Current menu has no dishes")
    return menu


async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("RUSH-HOUR SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        menu = await preflight(client)
        clients = await create_clients(client)

        print(f"\nFiring {num_orders} orders from {len(clients)} clients...\n")
        start_time = time.time()
        results = await asyncio.gather(
            *[send_order(client, i + 1, menu, clients) for i in range(num_orders)]
        )
        total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Failed Orders: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    for client_type in ("internal", "external"):
        subset = [r for r in results if r["client_type"] == client_type]
        if subset:
            ok = len([r for r in subset if r["success"]])
            print(f"   {client_type}: {ok}/{len(subset)} successful")

    if successful:
        times = [r["time"] for r in successful]
        print("\nPerformance Metrics:")
        print(f"   Average Response: {round(sum(times) / len(times), 3)}s")
        print(f"   Fastest: {min(times)}s")
        print(f"   Slowest: {max(times)}s")

    if failed:
        print("\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['client_type']}]: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check the Celery terminal - every export task should complete")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush-hour order simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    try:
        asyncio.run(run_simulation(args.orders))
    except (httpx.HTTPError, RuntimeError) as e:
        print(f"\nPre-flight failed: {e}")
        sys.exit(1)
