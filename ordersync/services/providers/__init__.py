from ordersync.models.integration import IntegrationProviderType
from ordersync.services.providers.base import InboundRequest, ProviderAdapter
from ordersync.services.providers.shopify import ShopifyAdapter
from ordersync.services.providers.woocommerce import WooCommerceAdapter


def get_provider_adapter(provider: IntegrationProviderType | str) -> ProviderAdapter:
    """Factory function to get the adapter for a storefront provider."""
    adapters: dict[str, type[ProviderAdapter]] = {
        IntegrationProviderType.SHOPIFY.value: ShopifyAdapter,
        IntegrationProviderType.WOOCOMMERCE.value: WooCommerceAdapter,
    }

    key = provider.value if isinstance(provider, IntegrationProviderType) else provider
    adapter_class = adapters.get(key)
    if not adapter_class:
        raise ValueError(f"Unsupported provider: {provider}")

    return adapter_class()


__all__ = [
    "InboundRequest",
    "ProviderAdapter",
    "ShopifyAdapter",
    "WooCommerceAdapter",
    "get_provider_adapter",
]
