"""Chain-data provider detection and registry.

detect_provider() looks at the shape of a delivery and names the provider
that sent it, or returns None when nothing matches. ProviderRegistry maps
that name to a configured adapter instance. The registry is built once by
the composition root and handed to the runtime; there is no global state.
"""

import logging
from typing import Literal, Mapping

from onchain.alchemy import AlchemyAdapter, looks_like_alchemy
from onchain.base import ChainDataAdapter

logger = logging.getLogger(__name__)

ProviderId = Literal["alchemy"]


class UnknownProviderError(KeyError):
    """Raised when no adapter is registered for a provider id."""


def detect_provider(headers: Mapping[str, str], body: object) -> ProviderId | None:
    """Name the chain-data provider that sent a delivery.

    Args:
        headers: Request headers, keys lower-cased.
        body: Decoded JSON body, or None if the body was not JSON.

    Returns:
        A provider id, or None if the delivery matches no known provider.
    """
    if looks_like_alchemy(headers, body):
        return "alchemy"
    logger.debug("No provider matched delivery (headers: %s).", sorted(headers.keys()))
    return None


class ProviderRegistry:
    """Maps provider ids to adapter instances."""

    def __init__(self) -> None:
        self._adapters: dict[str, ChainDataAdapter] = {}

    def register(self, adapter: ChainDataAdapter) -> None:
        """Register an adapter under its name.

        Raises:
            ValueError: If an adapter with the same name is already registered.
        """
        if adapter.name in self._adapters:
            raise ValueError(f"Provider '{adapter.name}' is already registered.")
        self._adapters[adapter.name] = adapter

    def get_adapter(self, provider: str) -> ChainDataAdapter:
        """Return the adapter for a provider id.

        Raises:
            UnknownProviderError: If nothing is registered under that id.
        """
        try:
            return self._adapters[provider]
        except KeyError:
            raise UnknownProviderError(f"Unknown provider: {provider}") from None

    def __contains__(self, provider: object) -> bool:
        return provider in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)


def build_provider_registry(alchemy_signing_key: str | None) -> ProviderRegistry:
    """Registry with every supported chain-data provider."""
    registry = ProviderRegistry()
    registry.register(AlchemyAdapter(signing_key=alchemy_signing_key))
    return registry
