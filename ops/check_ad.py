from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any
import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("ADCHECK_BASE_URL", "http://localhost:8000")
DEFAULT_TIMEOUT_SECONDS = 180

EXAMPLES = [
    "Buy our amazing organic coffee with free shipping!",
    "Revolutionary weight loss supplement - lose 30 pounds fast!",
    "Professional web development services for businesses",
]

log = logging.getLogger("check_ad")


def http_post(url: str, payload: dict[str, Any]) -> tuple[int | None, dict[str, Any]]:
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url=url,
        data=data,
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8")
            return resp.status, (json.loads(raw) if raw else {})
    except urllib.error.HTTPError as e:
        try:
            body = e.read().decode("utf-8")
            return e.code, json.loads(body) if body else {}
        except (OSError, ValueError):
            return e.code, {"success": False, "message": f"HTTP {e.code} {e.reason}"}
    except urllib.error.URLError as e:
        log.error("network error for %s: %s", url, e)
        return None, {"success": False, "message": str(e.reason)}


def print_verdict(summary: str, result: dict[str, Any]) -> None:
    print(f"Ad summary: \"{summary}\"")
    print("=" * 50)

    check = result.get("policyCheck") or {}
    if not result.get("success"):
        print(f"Error: {result.get('message')} ({result.get('error', 'UNKNOWN')})")
        if result.get("details"):
            print(f"  Details: {result['details']}")
        return

    print(f"Compliant: {'NO' if check.get('violated') else 'YES'}")
    for i, v in enumerate(check.get("violations") or [], start=1):
        label = f"{v.get('category')}: {v['name']}" if v.get("name") else v.get("category")
        print(f"  {i}. [{v.get('severity', '?').upper()}] {label}")
        print(f"     {v.get('description')}")
    if check.get("reasoning"):
        print(f"\nReasoning: {check['reasoning']}")
    if check.get("recommendations"):
        print(f"Recommendations: {check['recommendations']}")


def main() -> int:
    p = argparse.ArgumentParser(description="Check an ad summary against the advertising policies of a running service.")
    p.add_argument("summary", nargs="*", help="ad summary text (quoted or as several words)")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--json", action="store_true", help="print the raw JSON response")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    summary = " ".join(args.summary).strip()
    if not summary:
        print("Usage: python ops/check_ad.py \"Your ad summary here\"", file=sys.stderr)
        print("Examples:", file=sys.stderr)
        for example in EXAMPLES:
            print(f"  python ops/check_ad.py \"{example}\"", file=sys.stderr)
        return 2

    endpoint = f"{args.base_url.rstrip('/')}/v1/compliance/check"
    log.info("checking summary via %s", endpoint)
    status, resp = http_post(endpoint, {"summary": summary})

    if args.json:
        print(json.dumps(resp, indent=2, ensure_ascii=False))
    else:
        print_verdict(summary, resp)

    if status is None or not resp.get("success"):
        return 2
    return 1 if (resp.get("policyCheck") or {}).get("violated") else 0


if __name__ == "__main__":
    raise SystemExit(main())
