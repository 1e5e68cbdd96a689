"""
Order Rush Simulation Script

Simulates many customers filling carts and checking out at the same time,
then (optionally) walks every new order through the kitchen flow as an
admin. Run from project root against a running server:

    python scripts/simulate.py --orders 50
    python scripts/simulate.py --admin-email admin@example.com --admin-password secret

Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50

# Sample data for random orders
FIRST_NAMES = ["Lena", "Jonas", "Mia", "Paul", "Emma", "Felix", "Sara", "Noah", "Lea", "Ali"]
LAST_NAMES = ["Müller", "Schmidt", "Schneider", "Fischer", "Weber", "Meyer", "Wagner", "Becker", "Hoffmann", "Yilmaz"]
STREETS = ["Hauptstraße", "Bahnhofstraße", "Gartenweg", "Schillerstraße", "Lindenallee", "Marktplatz"]
POSTAL_CODES = ["10115", "10117", "10119", "10178", "10179", "10243", "10245", "10247"]
FALLBACK_MENU = [
    {"id": "falafel-plate", "name_en": "Falafel Plate", "price": "8.90"},
    {"id": "chicken-shawarma", "name_en": "Chicken Shawarma", "price": "9.50"},
    {"id": "hummus", "name_en": "Hummus", "price": "4.50"},
    {"id": "tabbouleh", "name_en": "Tabbouleh", "price": "5.20"},
    {"id": "baklava", "name_en": "Baklava", "price": "3.80"},
    {"id": "ayran", "name_en": "Ayran", "price": "2.00"},
]


def generate_random_customer() -> dict[str, str]:
    """Generate random checkout form fields."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "email": f"{first.lower()}.{random.randint(100, 999)}@example.com",
        "phone": f"0151-{random.randint(1000000, 9999999)}",
        "street": f"{random.choice(STREETS)} {random.randint(1, 120)}",
        "city": "Berlin",
        "postal_code": random.choice(POSTAL_CODES),
    }


async def load_menu(client: httpx.AsyncClient) -> list[dict[str, Any]]:
    """Available products from the server, or a fallback menu."""
    try:
        response = await client.get(f"{API_BASE_URL}/api/menu/products", timeout=10.0)
        products = response.json() if response.status_code == 200 else []
    except httpx.HTTPError:
        products = []
    return products or FALLBACK_MENU


# =============================================================================
# CUSTOMER SIMULATION
# =============================================================================

async def place_order(
    client: httpx.AsyncClient,
    order_num: int,
    menu: list[dict[str, Any]],
    order_type: str,
) -> dict[str, Any]:
    """Fill a fresh cart and check it out."""
    headers = {"X-Cart-Session": f"sim-{uuid.uuid4().hex}"}
    start_time = time.time()

    try:
        for product in random.sample(menu, k=min(len(menu), random.randint(1, 4))):
            response = await client.post(
                f"{API_BASE_URL}/api/cart/items",
                headers=headers,
                json={
                    "product_id": product["id"],
                    "name": product["name_en"],
                    "unit_price": str(product["price"]),
                    "quantity": random.randint(1, 3),
                    "notes": random.choice([None, None, "No onions", "Extra spicy"]),
                },
                timeout=30.0,
            )
            response.raise_for_status()

        payload = {
            **generate_random_customer(),
            "order_type": order_type,
            "payment_method": random.choice(["cash", "card"]),
            "notes": random.choice([None, "Ring twice", "Leave at door"]),
        }
        response = await client.post(
            f"{API_BASE_URL}/api/checkout",
            headers=headers,
            json=payload,
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "order_number": data["order_number"],
                "total": Decimal(data["total"]),
                "time": elapsed,
                "mode": order_type,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
            "mode": order_type,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
            "mode": order_type,
        }


# =============================================================================
# ADMIN SIMULATION
# =============================================================================

async def work_orders(
    client: httpx.AsyncClient,
    order_ids: list[str],
    email: str,
    password: str,
) -> dict[str, int]:
    """Accept (or occasionally reject) each order and advance it to delivered."""
    response = await client.post(
        f"{API_BASE_URL}/api/auth/signin",
        json={"email": email, "password": password},
    )
    response.raise_for_status()
    headers = {"Authorization": f"Bearer {response.json()['token']}"}

    counts = {"delivered": 0, "cancelled": 0, "failed": 0}
    for order_id in order_ids:
        base = f"{API_BASE_URL}/api/admin/orders/{order_id}"
        if random.random() < 0.1:
            response = await client.post(
                f"{base}/reject", headers=headers, json={"rejection_reason": "Kitchen overloaded"}
            )
            counts["cancelled" if response.status_code == 200 else "failed"] += 1
            continue

        response = await client.post(
            f"{base}/accept", headers=headers, json={"delivery_time": f"{random.randint(20, 50)} min"}
        )
        for _ in range(3):
            if response.status_code != 200:
                break
            response = await client.post(f"{base}/advance", headers=headers)

        if response.status_code == 200 and response.json()["status"] == "delivered":
            counts["delivered"] += 1
        else:
            counts["failed"] += 1
    return counts


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    mode: str = "both",
    num_orders: int = TOTAL_ORDERS,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
) -> dict[str, Any]:
    """
    Run the order rush.

    Args:
        mode: "pickup", "delivery", or "both"
        num_orders: Number of orders to simulate
        admin_email, admin_password: Admin account used to work the orders
    """
    print("=" * 70)
    print("ORDER RUSH SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Mode: {mode}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu = await load_menu(client)
        tasks = []
        for i in range(num_orders):
            if mode == "both":
                order_type = "delivery" if i % 2 == 0 else "pickup"
            else:
                order_type = mode
            tasks.append(place_order(client, i + 1, menu, order_type))
        results = await asyncio.gather(*tasks)

        successful = [r for r in results if r["success"]]
        admin_counts = None
        if admin_email and admin_password and successful:
            print("\nWorking orders as admin...")
            admin_counts = await work_orders(
                client, [r["order_id"] for r in successful], admin_email, admin_password
            )

    total_time = round(time.time() - start_time, 2)
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Failed Orders: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum((r["total"] for r in successful), Decimal("0.00"))
        numbers = [r["order_number"] for r in successful]
        print(f"\nPerformance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   Total Revenue: €{total_revenue}")
        print(f"   Duplicate order numbers: {len(numbers) - len(set(numbers))}")

    if admin_counts:
        print(f"\nAdmin: {admin_counts}")

    if failed:
        print(f"\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['mode']}]: {f['error']}")

    print("\n" + "=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def check_health() -> bool:
    """Pre-flight check against /health."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health", timeout=10.0)
        except httpx.HTTPError as e:
            print(f"Server unreachable: {e}")
            return False
    data = response.json()
    print(f"Health: {data.get('status')} (store={data.get('data_store')}, feed={data.get('change_feed')})")
    return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Rush Simulation Script")
    parser.add_argument("--pickup", action="store_true", help="Pickup orders only")
    parser.add_argument("--delivery", action="store_true", help="Delivery orders only")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--admin-email", help="Admin account used to work the orders")
    parser.add_argument("--admin-password", help="Password of the admin account")
    args = parser.parse_args()

    if args.pickup:
        mode = "pickup"
    elif args.delivery:
        mode = "delivery"
    else:
        mode = "both"

    if not asyncio.run(check_health()):
        print("\nPre-flight check failed. Start the server first.")
        sys.exit(1)

    asyncio.run(run_simulation(mode, args.orders, args.admin_email, args.admin_password))
