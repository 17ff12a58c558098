"""Async load generator: create a payment, then process or cancel it."""

import argparse
import asyncio
import random
import statistics
import time
from uuid import uuid4

import httpx


async def send_one(client: httpx.AsyncClient, base_url: str, api_key: str, merchant_id: str, customer_id: str):
    """Create one payment and settle it; return (status_code, latency_ms)."""

    started = time.perf_counter()
    headers = {"x-api-key": api_key, "x-request-id": f"load_{uuid4().hex[:16]}"}
    payload = {
        "merchant_id": merchant_id,
        "customer_id": customer_id,
        "amount": random.randint(100, 250000),
        "currency": "USD",
        "method": random.choice(["credit_card", "bank_transfer", "digital_wallet"]),
        "reference": str(uuid4()),
    }
    try:
        resp = await client.post(f"{base_url}/api/v1/payments", json=payload, headers=headers)
        if resp.status_code == 201:
            payment_id = resp.json()["data"]["id"]
            action = "process" if random.random() < 0.8 else "cancel"
            resp = await client.post(f"{base_url}/api/v1/payments/{payment_id}/{action}", headers=headers)
        latency = (time.perf_counter() - started) * 1000
        return resp.status_code, latency
    except httpx.HTTPError:
        latency = (time.perf_counter() - started) * 1000
        return 599, latency


async def run(total: int, concurrency: int, base_url: str, api_key: str, merchant_id: str, customer_id: str):
    """Execute a bounded-concurrency load run and print summary stats."""

    sem = asyncio.Semaphore(concurrency)
    results = []

    async with httpx.AsyncClient(timeout=10.0) as client:
        async def worker():
            async with sem:
                return await send_one(client, base_url, api_key, merchant_id, customer_id)

        tasks = [asyncio.create_task(worker()) for _ in range(total)]
        for task in asyncio.as_completed(tasks):
            results.append(await task)

    codes = [c for c, _ in results]
    lats = sorted(latency for _, latency in results)
    success = sum(1 for c in codes if 200 <= c < 300)
    errors = total - success

    def pct(values, p):
        if not values:
            return 0.0
        idx = min(len(values) - 1, max(0, int((p / 100.0) * len(values)) - 1))
        return values[idx]

    print(f"total={total}")
    print(f"success={success}")
    print(f"errors={errors}")
    print(f"error_rate={(errors / total) * 100:.2f}%")
    print(f"p50_ms={pct(lats, 50):.2f}")
    print(f"p95_ms={pct(lats, 95):.2f}")
    print(f"p99_ms={pct(lats, 99):.2f}")
    print(f"avg_ms={statistics.mean(lats):.2f}")


if __name__ == "__main__":
    # Ids and key come from scripts/seed_merchant.py.
    parser = argparse.ArgumentParser()
    parser.add_argument("--total", type=int, default=1000)
    parser.add_argument("--concurrency", type=int, default=50)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--api-key", required=True)
    parser.add_argument("--merchant-id", required=True)
    parser.add_argument("--customer-id", required=True)
    args = parser.parse_args()
    asyncio.run(run(args.total, args.concurrency, args.base_url, args.api_key, args.merchant_id, args.customer_id))
