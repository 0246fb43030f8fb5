#!/usr/bin/env python3
# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Summarize shadow-mode telemetry

Usage:
  python scripts/shadow_report.py <gateway.log>
  cat gateway.log | python scripts/shadow_report.py -

Or show the gateway health/mode:
  python scripts/shadow_report.py --health [gateway_url]
"""

import asyncio
import json
import os
import sys

import httpx

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "gateway", "src"))

from scopeblind_gateway.headers import HEALTH_PATH  # noqa: E402
from scopeblind_gateway.telemetry import summarize_events  # noqa: E402


def print_report(summary: dict) -> None:
    total = summary["total"]
    print("\n" + "=" * 80)
    print("📊 ScopeBlind telemetry summary")
    print("=" * 80)
    print(f"Protected requests seen: {total}")
    for action, count in summary["actions"].items():
        print(f"  - {action}: {count}")
    if total:
        pct = 100.0 * summary["would_block"] / total
        print(f"\n🚫 Would be blocked under enforcement: {summary['would_block']} ({pct:.1f}%)")
    print(f"⚠️  Verifier errors (fallback policy applies): {summary['verifier_errors']}")
    if summary["failure_reasons"]:
        print("\nFailure reasons:")
        for reason, count in sorted(summary["failure_reasons"].items(), key=lambda kv: -kv[1]):
            print(f"  - {reason}: {count}")
    print("=" * 80 + "\n")


async def show_health(gateway_url: str) -> None:
    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{gateway_url.rstrip('/')}{HEALTH_PATH}")
            if resp.status_code == 200:
                print(json.dumps(resp.json(), indent=2))
            else:
                print(f"❌ Error: {resp.status_code} - {resp.text}")
        except httpx.HTTPError as e:
            print(f"❌ Gateway not running or connection failed: {e}")


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    if sys.argv[1] == "--health":
        gateway_url = sys.argv[2] if len(sys.argv) > 2 else "http://localhost:8787"
        asyncio.run(show_health(gateway_url))
        return

    if sys.argv[1] == "-":
        print_report(summarize_events(sys.stdin))
    else:
        with open(sys.argv[1], encoding="utf-8") as fh:
            print_report(summarize_events(fh))


if __name__ == "__main__":
    main()
