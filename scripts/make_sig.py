#!/usr/bin/env python3

import json
import sys

from tap_webhooks.services.webhook_verify import WebhookVerifier


def make_tap_signature(secret: str, payload: str) -> str:
    """Generate an x-tap-signature value for testing."""
    return WebhookVerifier(secret).compute_signature(json.loads(payload))


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: make_sig.py <secret> <payload>")
        sys.exit(1)

    secret = sys.argv[1]
    payload = sys.argv[2]

    # Validate payload is a JSON object
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError:
        print("Error: Payload must be valid JSON", file=sys.stderr)
        sys.exit(1)
    if not isinstance(decoded, dict):
        print("Error: Payload must be a JSON object", file=sys.stderr)
        sys.exit(1)

    print(make_tap_signature(secret, payload))
