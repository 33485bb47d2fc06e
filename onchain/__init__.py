"""Chain-data provider adapters."""

from onchain.alchemy import AlchemyAdapter
from onchain.base import ChainDataAdapter, DeliveryParseError, WebhookParseResult
from onchain.registry import ProviderRegistry, build_provider_registry, detect_provider

__all__ = [
    "AlchemyAdapter",
    "ChainDataAdapter",
    "DeliveryParseError",
    "ProviderRegistry",
    "WebhookParseResult",
    "build_provider_registry",
    "detect_provider",
]
