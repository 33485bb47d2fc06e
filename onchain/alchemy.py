"""Alchemy custom-webhook adapter.

Alchemy signs every delivery with HMAC-SHA256 over the raw body, keyed with
the webhook's signing key, and sends the hex digest in X-Alchemy-Signature.
Custom (GraphQL) webhooks deliver matched logs under event.data.block.logs:

{
    "webhookId": "wh_...",
    "id": "whevt_...",
    "type": "GRAPHQL",
    "event": {
        "data": {
            "block": {
                "number": 123,
                "logs": [{"transaction": {"hash": "0xabc..."}, ...}]
            }
        }
    }
}

Alchemy reference: https://docs.alchemy.com/reference/custom-webhook
"""

import hashlib
import hmac
import logging
import re
import time
from typing import Mapping

from onchain.base import ChainDataAdapter, DeliveryParseError, WebhookParseResult

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-alchemy-signature"

_TX_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")


def verify_alchemy_signature(body: bytes, header_signature: str, signing_key: str) -> bool:
    """Verify the HMAC-SHA256 signature Alchemy attaches to every delivery.

    Args:
        body: Raw request body bytes.
        header_signature: Value of the X-Alchemy-Signature header.
        signing_key: The webhook's signing key from the Alchemy dashboard.

    Returns:
        True if the signature is valid, False otherwise.
    """
    expected = hmac.new(
        key=signing_key.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()
    # compare_digest only accepts ASCII str; compare bytes so any header fails cleanly.
    provided = header_signature.strip().lower().encode("utf-8", "replace")
    return hmac.compare_digest(expected.encode("ascii"), provided)


def looks_like_alchemy(headers: Mapping[str, str], body: object) -> bool:
    """Shape check used by provider detection."""
    if SIGNATURE_HEADER in headers:
        return True
    if not isinstance(body, dict):
        return False
    event = body.get("event")
    data = event.get("data") if isinstance(event, dict) else None
    return isinstance(data, dict) and isinstance(data.get("block"), dict)


class AlchemyAdapter(ChainDataAdapter):
    """ChainDataAdapter for Alchemy custom webhooks.

    Attributes:
        signing_key: HMAC key. When None, signature checks are skipped with
            a warning so local development works without a dashboard key.
    """

    name = "alchemy"

    def __init__(self, signing_key: str | None) -> None:
        self.signing_key = signing_key

    def verify_signature(self, headers: Mapping[str, str], raw_body: bytes) -> bool:
        if not self.signing_key:
            logger.warning("ALCHEMY_SIGNING_KEY not set — skipping signature check.")
            return True

        signature = headers.get(SIGNATURE_HEADER, "")
        if not signature:
            logger.warning("Rejected delivery: missing %s header.", SIGNATURE_HEADER)
            return False
        return verify_alchemy_signature(raw_body, signature, self.signing_key)

    def parse(self, body: dict, headers: Mapping[str, str]) -> WebhookParseResult:
        """Collect transaction hashes from event.data.block.logs.

        Logs without a well-formed transaction hash are skipped. Several
        logs from the same transaction collapse into one hash.

        Raises:
            DeliveryParseError: If event.data.block is missing.
        """
        event = body.get("event")
        data = event.get("data") if isinstance(event, dict) else None
        block = data.get("block") if isinstance(data, dict) else None
        if not isinstance(block, dict):
            raise DeliveryParseError(
                "Unrecognised Alchemy payload — expected event.data.block. "
                f"Got keys: {sorted(body.keys())}"
            )

        logs = block.get("logs") or []
        tx_hashes: list[str] = []
        for entry in logs:
            tx = entry.get("transaction") if isinstance(entry, dict) else None
            tx_hash = tx.get("hash") if isinstance(tx, dict) else None
            if not isinstance(tx_hash, str) or not _TX_HASH.match(tx_hash):
                logger.debug("Skipping log without a valid transaction hash: %r", entry)
                continue
            if tx_hash.lower() not in (h.lower() for h in tx_hashes):
                tx_hashes.append(tx_hash)

        return WebhookParseResult(
            tx_hashes=tx_hashes,
            provider=self.name,
            delivery_id=body.get("id") or headers.get(SIGNATURE_HEADER) or None,
            received_at=int(time.time() * 1000),
        )
