#!/usr/bin/env python3
"""Hammer GET /v1/verify and show the per-IP rate limit kicking in.

RUN:  python scripts/load_test_verify.py

Prerequisites:
  - The API must be running: uvicorn certservice.main:app --port 8000

Random codes are used, so every allowed request is an audited not_found.
"""

from __future__ import annotations

import time

import httpx

from certservice.core.config import SETTINGS
from certservice.services.code_generator import random_string

BASE_URL = "http://localhost:8000"
TOTAL_REQUESTS = 100


def main() -> None:
    print("Verify Rate Limit Load Test")
    print("=" * 50)
    print(f"Target: {BASE_URL}/v1/verify")
    print(f"Total requests: {TOTAL_REQUESTS}")
    print()

    results: dict[int, int] = {}
    start = time.monotonic()

    with httpx.Client(base_url=BASE_URL, timeout=10) as client:
        for i in range(TOTAL_REQUESTS):
            code = random_string(SETTINGS.verification_code_length)
            resp = client.get("/v1/verify", params={"code": code})
            results[resp.status_code] = results.get(resp.status_code, 0) + 1
            if (i + 1) % 20 == 0:
                print(f"  Sent {i + 1}/{TOTAL_REQUESTS} requests...")

    elapsed = time.monotonic() - start

    print()
    print(f"Results after {TOTAL_REQUESTS} requests ({elapsed:.2f}s):")
    print("-" * 40)
    allowed = results.get(200, 0)
    throttled = results.get(429, 0)
    other = sum(v for k, v in results.items() if k not in (200, 429))
    print(f"  Allowed  (200): {allowed:>4}")
    print(f"  Throttled(429): {throttled:>4}")
    if other:
        print(f"  Other:          {other:>4}")
    print()
    print(f"Bucket capacity: {SETTINGS.verify_rate_limit} per client IP")

    if throttled == 0:
        print("WARNING: nothing was throttled; is VERIFY_RATE_LIMIT above the request count?")


if __name__ == "__main__":
    main()
