#!/usr/bin/env python3
"""Trigger the CRM automations from an external scheduler (cron, Cloud Scheduler).

Usage:
    python scripts/trigger_automations.py --backend-url https://api.example.com
    python scripts/trigger_automations.py --backend-url http://localhost:8000 \
        --automation stale-contacts --days-threshold 10

Exit code 0 if the run succeeded, 1 if it failed or reported step errors.
"""

import argparse
import json
import sys
from typing import Optional, Tuple

import httpx

TIMEOUT = 120.0

AUTOMATIONS = (
    "run-all",
    "recalc-waffling",
    "detect-at-risk",
    "deadline-alerts",
    "stale-contacts",
    "daily-digest",
)


def trigger(
    backend_url: str, automation: str, days_threshold: Optional[int] = None
) -> Tuple[bool, dict]:
    """POST one automation and return (succeeded, response body)."""
    url = f"{backend_url.rstrip('/')}/api/v1/automations/{automation}"
    body = {} if days_threshold is None else {"days_threshold": days_threshold}
    try:
        response = httpx.post(url, json=body, timeout=TIMEOUT)
    except httpx.TimeoutException:
        return False, {"error": "Request timed out"}
    except httpx.ConnectError as exc:
        return False, {"error": f"Connection failed: {exc}"}
    except httpx.HTTPError as exc:
        return False, {"error": f"HTTP error: {exc}"}

    try:
        data = response.json()
    except ValueError:
        return False, {"error": f"HTTP {response.status_code}, response is not valid JSON"}

    if response.status_code != 200:
        return False, data
    return bool(data.get("success")), data


def print_run_all(data: dict) -> None:
    """Print the run-all summary table."""
    separator = "-" * 50
    print()
    print(separator)
    print(f"{'COUNT':<25} {'VALUE'}")
    print(separator)
    for name, value in data.get("summary", {}).items():
        print(f"{name:<25} {value}")
    print(separator)
    print(f"duration_ms: {data.get('duration_ms')}  ran_at: {data.get('ran_at')}")
    for error in data.get("errors") or []:
        print(f"ERROR: {error}")
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Trigger CRM automations over HTTP")
    parser.add_argument(
        "--backend-url",
        required=True,
        help="Base URL of the automations API",
    )
    parser.add_argument(
        "--automation",
        choices=AUTOMATIONS,
        default="run-all",
        help="Automation to trigger (default: run-all)",
    )
    parser.add_argument(
        "--days-threshold",
        type=int,
        default=None,
        help="Window for deadline-alerts / stale-contacts",
    )
    args = parser.parse_args()

    passed, data = trigger(args.backend_url, args.automation, args.days_threshold)

    if args.automation == "run-all" and "summary" in data:
        print_run_all(data)
    else:
        print(json.dumps(data, indent=2))

    print("Automation succeeded." if passed else "Automation FAILED.")
    sys.exit(0 if passed else 1)


if __name__ == "__main__":
    main()
