"""Send a signed, Alchemy-shaped demo delivery to a local server.

The transaction hash must exist on the configured chain and contain a
CogniAction log, otherwise the server answers 204.

Usage:
    python scripts/demo_webhook.py <tx_hash> [--url http://127.0.0.1:8000]

Signs with ALCHEMY_SIGNING_KEY when it is set; the server skips the check
when it has no key either.
"""

import argparse
import hashlib
import hmac
import json
import os
import sys
import time
import urllib.error
import urllib.request


BASE_URL = "http://127.0.0.1:8000"
WEBHOOK_PATH = "/api/v1/webhooks/onchain/cogni-signal"


def _payload(tx_hash: str) -> dict:
    return {
        "webhookId": "wh_demo",
        "id": f"whevt_demo_{int(time.time())}",
        "createdAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "type": "GRAPHQL",
        "event": {
            "data": {
                "block": {
                    "number": 0,
                    "logs": [{"transaction": {"hash": tx_hash}}],
                }
            }
        },
    }


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("tx_hash")
    parser.add_argument("--url", default=BASE_URL)
    args = parser.parse_args()

    body = json.dumps(_payload(args.tx_hash)).encode("utf-8")
    headers = {"Content-Type": "application/json"}

    signing_key = os.environ.get("ALCHEMY_SIGNING_KEY", "")
    if signing_key:
        headers["X-Alchemy-Signature"] = hmac.new(signing_key.encode("utf-8"), body, hashlib.sha256).hexdigest()
    else:
        print("ALCHEMY_SIGNING_KEY not set — sending unsigned.", file=sys.stderr)

    req = urllib.request.Request(url=f"{args.url}{WEBHOOK_PATH}", method="POST", data=body, headers=headers)
    print(f"Posting demo delivery for {args.tx_hash} to {WEBHOOK_PATH} ...")
    try:
        with urllib.request.urlopen(req, timeout=60) as resp:
            status, text = resp.status, resp.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        status, text = exc.code, exc.read().decode("utf-8")
    except urllib.error.URLError as exc:
        print(f"Failed to reach API at {args.url}: {exc}", file=sys.stderr)
        print("Start it first with: uvicorn main:app", file=sys.stderr)
        return 1

    print(f"HTTP {status}")
    if text:
        print(json.dumps(json.loads(text), indent=2))
    return 0 if status in {200, 204} else 2


if __name__ == "__main__":
    raise SystemExit(main())
