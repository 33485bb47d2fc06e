"""Receipt fetcher.

Turns a transaction hash into at most one Signal: fetch the receipt, scan
its logs in order, and decode the first one emitted by the governance
contract with the CogniAction topic. Later matching logs in the same
transaction are ignored.

The RPC client is injected. In production it is AsyncWeb3(...).eth, built
by the composition root; tests pass a small fake with the same two
coroutine methods.
"""

import logging
from typing import Any, Protocol

from web3.exceptions import TransactionNotFound

from schemas.signal import Signal, signal_to_log
from signals.decoder import decode_cogni_log, is_cogni_log

logger = logging.getLogger(__name__)


class EthClient(Protocol):
    """The subset of web3's AsyncEth the fetcher uses."""

    async def get_transaction_receipt(self, transaction_hash: Any) -> Any: ...

    async def get_block(self, block_identifier: Any) -> Any: ...


class ReceiptSignalFetcher:
    """Fetches transaction receipts and decodes CogniAction signals.

    Holds no state besides the injected client, so one instance is safely
    shared by concurrent deliveries.
    """

    def __init__(self, eth: EthClient) -> None:
        self._eth = eth

    async def fetch_and_decode(self, tx_hash: str, contract_address: str) -> Signal | None:
        """Fetch a receipt and decode its first CogniAction log.

        Args:
            tx_hash: 0x-prefixed transaction hash.
            contract_address: Governance contract address. Compared
                case-insensitively against each log's address.

        Returns:
            The decoded Signal, or None when the transaction is unknown or
            has no decodable CogniAction log from the contract.

        Raises:
            Exception: RPC transport failures propagate; the webhook entry
                point turns them into a 500.
        """
        try:
            receipt = await self._eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            logger.warning("Transaction %s not found — skipping.", tx_hash)
            return None

        contract = contract_address.lower()
        for log in receipt["logs"]:
            if str(log["address"]).lower() != contract:
                continue
            if not is_cogni_log(log):
                continue

            block_timestamp = await self._block_timestamp(receipt)
            signal = decode_cogni_log(log, block_timestamp=block_timestamp)
            if signal is None:
                continue

            logger.info(
                "Decoded CogniAction from tx %s log %s: %s",
                tx_hash,
                log.get("logIndex"),
                signal_to_log(signal),
            )
            return signal

        logger.info("No CogniAction log from %s in tx %s.", contract_address, tx_hash)
        return None

    async def _block_timestamp(self, receipt: Any) -> int:
        block = await self._eth.get_block(receipt["blockNumber"])
        return int(block["timestamp"])
