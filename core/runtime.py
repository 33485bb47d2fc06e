"""Signal runtime — the per-delivery pipeline orchestrator.

SignalRuntime is the single entry point for webhook deliveries. The HTTP
layer hands it the request headers and raw body; it returns the status code
and JSON body to send back. Each call is independent: no state is carried
from one delivery to the next.

Pipeline order inside process_delivery():
    1. Detect the chain-data provider from the delivery shape
    2. Verify the provider's signature over the raw body
    3. Parse the delivery into transaction hashes
    4. For each hash, in order:
        a. fetch the receipt and decode the CogniAction signal
        b. run the chain/DAO, freshness and params gates
        c. execute the signal via ActionExecutor
    5. Choose the response status from the collected outcomes

Hashes are processed strictly sequentially. A validation failure on one
hash is recorded and never affects the others.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from auth.github_app import GitHubAppAuth
from auth.policy import AllowlistStore
from config import Settings
from core.executor import ActionExecutor
from core.registry import ActionRegistry, build_action_registry
from onchain.base import DeliveryParseError
from onchain.registry import ProviderRegistry, build_provider_registry, detect_provider
from schemas.signal import Signal, signal_to_log
from signals.fetcher import EthClient, ReceiptSignalFetcher
from signals.validation import (
    NonceLedger,
    NoReplayLedger,
    SignalValidationError,
    check_chain_and_dao,
    ensure_fresh,
    parse_params,
)
from vcs.factory import VcsProviderFactory

logger = logging.getLogger(__name__)


@dataclass
class DeliveryOutcome:
    """HTTP response for one delivery. body is None for 204."""

    status_code: int
    body: dict[str, Any] | None = None


class SignalRuntime:
    """Runs the ingestion and execution pipeline for webhook deliveries.

    All collaborators are injected and shared across deliveries; none of
    them hold per-delivery state.

    Attributes:
        settings: Allowed chain, DAO and contract, plus strict-mode flag.
        providers: Chain-data adapters by provider id.
        fetcher: Receipt fetcher and CogniAction decoder.
        executor: Dispatches validated signals to action handlers.
        ledger: Nonce ledger consulted by the freshness gate.
    """

    def __init__(
        self,
        settings: Settings,
        providers: ProviderRegistry,
        fetcher: ReceiptSignalFetcher,
        executor: ActionExecutor,
        ledger: NonceLedger | None = None,
    ) -> None:
        self.settings = settings
        self.providers = providers
        self.fetcher = fetcher
        self.executor = executor
        self.ledger = ledger or NoReplayLedger()

    @property
    def registry(self) -> ActionRegistry:
        return self.executor.registry

    async def process_delivery(self, headers: Mapping[str, str], raw_body: bytes) -> DeliveryOutcome:
        """Run the pipeline for one webhook delivery.

        Args:
            headers: Request headers. Keys are matched case-insensitively.
            raw_body: Exact request bytes, needed for signature checks.

        Returns:
            The DeliveryOutcome to send back: 204, 400, 401, 422 or 200.

        Raises:
            Exception: Infrastructure failures such as an unreachable RPC
                endpoint propagate; the HTTP layer turns them into a 500.
        """
        headers = {k.lower(): v for k, v in headers.items()}
        body = _decode_json(raw_body)

        # Step 1: provider detection. Unknown shapes are not an error.
        provider = detect_provider(headers, body)
        if provider is None or provider not in self.providers:
            logger.info("Ignoring delivery from unrecognised provider.")
            return DeliveryOutcome(204)
        adapter = self.providers.get_adapter(provider)

        # Step 2: signature, before anything in the body is trusted.
        if not adapter.verify_signature(headers, raw_body):
            logger.warning("Rejected %s delivery: invalid signature.", provider)
            return DeliveryOutcome(401, {"error": "bad_signature"})

        # Step 3: transaction hashes.
        if not isinstance(body, dict):
            logger.error("Rejected %s delivery: body is not a JSON object.", provider)
            return DeliveryOutcome(400, {"error": "malformed_delivery", "detail": "body must be a JSON object"})
        try:
            parsed = adapter.parse(body, headers)
        except DeliveryParseError as exc:
            logger.error("Rejected %s delivery: %s", provider, exc)
            return DeliveryOutcome(400, {"error": "malformed_delivery", "detail": str(exc)})

        logger.info(
            "Accepted %s delivery %s with %d transaction(s).",
            provider, parsed.delivery_id, len(parsed.tx_hashes),
        )
        if not parsed.tx_hashes:
            return DeliveryOutcome(204)

        # Step 4: one signal per hash, strictly in order.
        details: list[str] = []
        results: list[dict[str, Any]] = []
        for tx_hash in parsed.tx_hashes:
            signal = await self.fetcher.fetch_and_decode(tx_hash, self.settings.signal_contract)
            if signal is None:
                continue

            try:
                self._validate(signal)
            except SignalValidationError as exc:
                logger.warning("Signal from tx %s failed validation: %s", tx_hash, exc)
                details.append(f"{tx_hash}: {exc}")
                continue

            result = await self.executor.execute(signal)
            logger.info(
                "Executed signal from tx %s: %s -> %s",
                tx_hash, signal_to_log(signal), result.model_dump(exclude_none=True),
            )
            results.append({"tx_hash": tx_hash, **result.model_dump(exclude_none=True)})

        # Step 5: response status. Validation failures win so they are
        # never hidden behind a 200.
        if details:
            return DeliveryOutcome(422, {"error": "validation_failed", "details": details, "results": results})
        if results:
            return DeliveryOutcome(200, {"status": "ok", "processed": len(results), "results": results})
        return DeliveryOutcome(204)

    def _validate(self, signal: Signal) -> None:
        """Run every gate. Raises SignalValidationError on the first failure."""
        check_chain_and_dao(signal, self.settings.chain_id, self.settings.allowed_dao)
        ensure_fresh(
            signal,
            now=int(time.time()),
            ledger=self.ledger,
            require_extra=self.settings.require_signal_extra,
        )
        parse_params(signal)


def build_runtime(
    settings: Settings,
    *,
    http: httpx.AsyncClient,
    eth: EthClient,
    allowlist: AllowlistStore | None = None,
    ledger: NonceLedger | None = None,
) -> SignalRuntime:
    """Compose a SignalRuntime from settings and the process-owned clients.

    Args:
        settings: Validated service configuration.
        http: Shared client whose base_url is the GitHub REST API.
        eth: web3 AsyncEth (or a compatible fake).
        allowlist: DAO-to-repository allowlist. None means allow-all.
        ledger: Nonce ledger. None means no replay protection.
    """
    github_auth = GitHubAppAuth(
        app_id=settings.github_app_id,
        private_key_pem=settings.github_private_key,
        http=http,
        installations=settings.dao_installations,
    )
    executor = ActionExecutor(
        registry=build_action_registry(),
        provider_factory=VcsProviderFactory(github_auth, http, allowlist=allowlist),
    )
    return SignalRuntime(
        settings=settings,
        providers=build_provider_registry(settings.alchemy_signing_key),
        fetcher=ReceiptSignalFetcher(eth),
        executor=executor,
        ledger=ledger,
    )


def _decode_json(raw_body: bytes) -> Any:
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
