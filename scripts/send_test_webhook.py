#!/usr/bin/env python3
"""
Script: send_test_webhook.py
Description: Send a signed webhook to a locally running delivery service.

Builds a webhook payload the way the relay does, signs the exact body
bytes with the shared secret and POSTs it, so the receiver pipeline can be
exercised without the relay.

Usage:
    python scripts/send_test_webhook.py --secret <hex> --from tell/alice --body "hi"
    python scripts/send_test_webhook.py --generate-secret

Security Note:
    A generated secret is shown only once. Put it in CLAWTELL_WEBHOOK_SECRET.
"""

import argparse
import json
import sys
import uuid
from datetime import datetime, timezone

import httpx

from clawtell.auth.signature import SIGNATURE_HEADER, compute_signature, generate_webhook_secret


def build_payload(sender: str, body: str, subject: str = None, thread_id: str = None) -> dict:
    payload = {
        "messageId": str(uuid.uuid4()),
        "from": sender,
        "body": body,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if subject:
        payload["subject"] = subject
    if thread_id:
        payload["threadId"] = thread_id
    return payload


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a signed test webhook")
    parser.add_argument("--url", default="http://127.0.0.1:8000/webhook/clawtell", help="Webhook URL")
    parser.add_argument("--secret", default=None, help="Shared webhook secret (omit to send unsigned)")
    parser.add_argument("--from", dest="sender", default="tell/tester", help="Sender name")
    parser.add_argument("--body", default="Hello from send_test_webhook.py", help="Message body")
    parser.add_argument("--subject", default=None, help="Optional subject")
    parser.add_argument("--thread-id", default=None, help="Optional thread id")
    parser.add_argument("--generate-secret", action="store_true", help="Print a new secret and exit")
    args = parser.parse_args()

    if args.generate_secret:
        print(generate_webhook_secret())
        return 0

    raw_body = json.dumps(build_payload(args.sender, args.body, args.subject, args.thread_id)).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if args.secret:
        headers[SIGNATURE_HEADER] = compute_signature(raw_body, args.secret)

    try:
        response = httpx.post(args.url, content=raw_body, headers=headers, timeout=10.0)
    except httpx.HTTPError as e:
        print(f"ERROR: request failed: {e}")
        return 1

    print(f"HTTP {response.status_code}")
    print(response.text)
    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
