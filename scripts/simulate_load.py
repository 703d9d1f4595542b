"""
Simulate payment-provider traffic against the ingestion endpoint.

Sends random bursts of concurrent payment webhooks, sleeping a random interval
between bursts, until interrupted (Ctrl+C).

Usage:
    python scripts/simulate_load.py
    python scripts/simulate_load.py --base-url http://localhost:3333 --min-burst 50 --max-burst 100
"""
import argparse
import asyncio
import logging
import random
import secrets
import time
from datetime import datetime, timedelta, timezone

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:3333"
EVENT_TYPES = ["payment.completed", "payment.pending", "payment.failed", "payment.refunded"]
CURRENCIES = ["NGN", "USD", "GBP", "EUR"]


def random_payment() -> dict:
    occurred_at = datetime.now(timezone.utc) - timedelta(seconds=random.randint(0, 3599))
    return {
        "event_id": f"evt_{secrets.token_hex(6)}",
        "type": random.choice(EVENT_TYPES),
        "amount": str(100 + random.randrange(1_000_000)),
        "currency": random.choice(CURRENCIES),
        "occurred_at": occurred_at.isoformat(),
    }


async def send_one(client: httpx.AsyncClient, url: str) -> bool:
    """Send a single webhook. Returns True on a 200."""
    try:
        resp = await client.post(
            url,
            json=random_payment(),
            # Signatures are not verified by the server; sent for realism only
            headers={"X-Webhook-Signature": secrets.token_hex(16)},
        )
    except httpx.HTTPError as e:
        logger.debug("Webhook request failed: %s", str(e))
        return False

    logger.debug("Webhook response: %s %s", resp.status_code, resp.text)
    return resp.status_code == 200


async def send_burst(client: httpx.AsyncClient, base_url: str, count: int) -> None:
    url = f"{base_url}/webhooks/payments"
    start = time.monotonic()
    results = await asyncio.gather(*(send_one(client, url) for _ in range(count)))
    elapsed = time.monotonic() - start
    logger.info(
        "Burst completed: requests=%d ok=%d elapsed=%.2fs",
        count, sum(results), elapsed,
    )


async def main():
    parser = argparse.ArgumentParser(description="Simulate bursts of payment webhooks")
    parser.add_argument("--base-url", default=BASE_URL)
    parser.add_argument("--min-burst", type=int, default=500)
    parser.add_argument("--max-burst", type=int, default=1000)
    parser.add_argument("--max-interval", type=float, default=10.0, help="max seconds between bursts")
    args = parser.parse_args()

    logger.info(
        "Load simulator started against %s (burst %d-%d, interval 0-%.0fs); Ctrl+C to stop",
        args.base_url, args.min_burst, args.max_burst, args.max_interval,
    )

    limits = httpx.Limits(max_connections=200, max_keepalive_connections=50)
    timeout = httpx.Timeout(30.0, pool=None)
    async with httpx.AsyncClient(limits=limits, timeout=timeout) as client:
        while True:
            interval = random.uniform(0, args.max_interval)
            if interval > 0:
                logger.debug("Waiting %.2fs until next burst", interval)
                await asyncio.sleep(interval)

            count = random.randint(args.min_burst, args.max_burst)
            await send_burst(client, args.base_url, count)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Load simulator stopped")
