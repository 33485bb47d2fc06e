"""Chain-data provider adapter interface.

A chain-data provider (Alchemy, QuickNode, ...) watches the governance
contract and POSTs a webhook when a matching transaction lands. Each
provider signs and shapes its deliveries differently; an adapter hides that
behind two calls: verify_signature() and parse().

Adapters never touch the chain themselves. They only extract transaction
hashes; fetching and decoding the receipts is the signals layer's job.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping


class DeliveryParseError(ValueError):
    """Raised when a verified delivery does not have the provider's shape.

    The webhook entry point maps this to HTTP 400.
    """


@dataclass
class WebhookParseResult:
    """What the pipeline needs from one webhook delivery.

    Attributes:
        tx_hashes: Transaction hashes to fetch, in delivery order, without
            duplicates. May be empty.
        provider: Identifier of the adapter that parsed the delivery.
        delivery_id: Provider-specific id for correlating logs, if any.
        received_at: Unix milliseconds when the delivery was parsed.
    """

    tx_hashes: list[str]
    provider: str
    delivery_id: str | None = None
    received_at: int = 0


class ChainDataAdapter(ABC):
    """Abstract base class for chain-data provider adapters.

    Headers are passed as a mapping with lower-cased keys.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier, e.g. "alchemy"."""
        ...

    @abstractmethod
    def verify_signature(self, headers: Mapping[str, str], raw_body: bytes) -> bool:
        """Return True if the delivery was signed by the provider.

        Args:
            headers: Request headers, keys lower-cased.
            raw_body: Exact request bytes. Signatures are computed over the
                raw body, so this must be read before any JSON parsing.
        """
        ...

    @abstractmethod
    def parse(self, body: dict, headers: Mapping[str, str]) -> WebhookParseResult:
        """Extract transaction hashes from a decoded delivery body.

        Raises:
            DeliveryParseError: If the body does not have the provider's
                shape.
        """
        ...
