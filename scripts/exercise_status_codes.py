#!/usr/bin/env python3
"""
Walk a running Status service through every status code it demonstrates.

Start the service first (``status-lab`` or ``python -m service_status.app.main``).
Each step sends its requests under its own ``X-Forwarded-For`` address so the
steps do not eat each other's rate-limit budget; that only works when the
server runs with ``STATUS_TRUST_PROXY_HEADERS=true``.

The maintenance step runs last: once maintenance mode is on, the toggle
endpoint itself answers 503, so the server stays in maintenance until it is
restarted.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx


VALID_TOKEN = "Bearer valid-token-123"

Step = Tuple[str, int, Callable[[httpx.AsyncClient], Awaitable[httpx.Response]]]


def _headers(step: int, auth: bool = False, **extra: str) -> dict:
    headers = {"X-Forwarded-For": f"198.51.100.{step}"}
    if auth:
        headers["Authorization"] = VALID_TOKEN
    headers.update(extra)
    return headers


async def _conditional_get(client: httpx.AsyncClient) -> httpx.Response:
    first = await client.get("/api/static/config", headers=_headers(6))
    return await client.get(
        "/api/static/config",
        headers=_headers(6, **{"If-None-Match": first.headers.get("etag", "")}),
    )


async def _rate_limit(client: httpx.AsyncClient) -> httpx.Response:
    response = None
    for _ in range(12):
        response = await client.get("/health", headers=_headers(11))
        if response.status_code == 429:
            break
    return response


async def _maintenance(client: httpx.AsyncClient) -> httpx.Response:
    await client.post("/admin/maintenance", json={"enabled": True}, headers=_headers(15, auth=True))
    return await client.get("/health", headers=_headers(15))


def _steps() -> List[Step]:
    return [
        ("200 OK - Get all users", 200,
         lambda c: c.get("/api/users", headers=_headers(1, auth=True))),
        ("200 OK - Get single user", 200,
         lambda c: c.get("/api/users/1", headers=_headers(2, auth=True))),
        ("201 Created - Create new user", 201,
         lambda c: c.post("/api/users", json={"name": "Bob Johnson", "email": "bob@example.com", "role": "user"},
                          headers=_headers(3, auth=True))),
        ("204 No Content - Delete user", 204,
         lambda c: c.delete("/api/users/2", headers=_headers(4, auth=True))),
        ("301 Moved Permanently - Redirect", 301,
         lambda c: c.get("/users", headers=_headers(5))),
        ("304 Not Modified - Conditional GET", 304, _conditional_get),
        ("400 Bad Request - Missing required fields", 400,
         lambda c: c.post("/api/users", json={"name": "Test User"}, headers=_headers(7, auth=True))),
        ("401 Unauthorized - No authentication token", 401,
         lambda c: c.get("/api/users", headers=_headers(8))),
        ("404 Not Found - User does not exist", 404,
         lambda c: c.get("/api/users/99999", headers=_headers(9, auth=True))),
        ("404 Not Found - Route does not exist", 404,
         lambda c: c.get("/api/nonexistent", headers=_headers(10))),
        ("429 Too Many Requests - Rate limit", 429, _rate_limit),
        ("500 Internal Server Error", 500,
         lambda c: c.get("/api/error/server", headers=_headers(12))),
        ("502 Bad Gateway - Upstream error", 502,
         lambda c: c.get("/api/external/data", headers=_headers(13))),
        ("504 Gateway Timeout", 504,
         lambda c: c.get("/api/slow/operation", headers=_headers(14))),
        ("503 Service Unavailable - Maintenance mode", 503, _maintenance),
    ]


def _body(response: httpx.Response) -> Optional[Any]:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def run(base_url: str, delay: float) -> int:
    """Execute every step and return the number of unexpected statuses."""
    failures = 0
    print("=" * 60)
    print("HTTP STATUS CODES DEMONSTRATION")
    print("=" * 60)

    async with httpx.AsyncClient(base_url=base_url, follow_redirects=False, timeout=10.0) as client:
        for name, expected, call in _steps():
            print(f"\n{name}")
            print("-" * 60)
            try:
                response = await call(client)
            except httpx.HTTPError as exc:
                failures += 1
                print(f"x Error: {exc}")
                continue

            marker = "ok" if response.status_code == expected else "MISMATCH"
            if response.status_code != expected:
                failures += 1
            print(f"[{marker}] Status: {response.status_code} (expected {expected})")
            if "location" in response.headers:
                print(f"  Location: {response.headers['location']}")
            body = _body(response)
            if body is not None:
                print(f"  Body: {json.dumps(body) if not isinstance(body, str) else body}")

            await asyncio.sleep(delay)

    print("\n" + "=" * 60)
    print(f"COMPLETED - {failures} unexpected status code(s)")
    print("=" * 60)
    return failures


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exercise every status code the Status service demonstrates.")
    parser.add_argument("--base-url", default=os.getenv("STATUS_BASE_URL", "http://localhost:3000"), help="Service base URL")
    parser.add_argument("--delay", type=float, default=0.1, help="Pause between steps in seconds")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        failures = asyncio.run(run(args.base_url, args.delay))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[exercise] failed: {exc}", file=sys.stderr)
        return 1

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
