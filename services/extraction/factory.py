"""Provider registry and configuration-driven factory.

``Settings.extraction_provider`` names the provider the API serves. Lookups
are case-insensitive; a name registered twice keeps the latest class and logs
the replacement.

Based on:
- Factory Pattern: https://refactoring.guru/design-patterns/factory-method/python
- Registry Pattern: Python Cookbook 3rd Edition, Recipe 9.22
"""

import logging

from services.extraction.base import ExtractionProvider
from services.extraction.ubl_provider import UblXmlExtractionProvider
from services.shared.config import Settings

logger = logging.getLogger(__name__)


def _registry_key(name: str) -> str:
    return name.strip().lower()


class ProviderRegistry:
    """Maps provider names to ExtractionProvider subclasses."""

    _providers: dict[str, type[ExtractionProvider]] = {
        "ubl_xml": UblXmlExtractionProvider,
    }

    @classmethod
    def register(cls, name: str, provider_class: type[ExtractionProvider]) -> None:
        """Register ``provider_class`` under ``name``.

        Args:
            name: Provider identifier, as used in Settings.extraction_provider
            provider_class: Concrete ExtractionProvider subclass

        Raises:
            TypeError: If provider_class does not implement ExtractionProvider
            ValueError: If name is blank
        """
        is_provider = isinstance(provider_class, type) and issubclass(
            provider_class, ExtractionProvider
        )
        if not is_provider:
            raise TypeError(f"{provider_class!r} is not an ExtractionProvider subclass")
        key = _registry_key(name)
        if not key:
            raise ValueError("Provider name must not be blank")

        previous = cls._providers.get(key)
        if previous is not None and previous is not provider_class:
            logger.warning(
                f"Replacing extraction provider '{key}': "
                f"{previous.__name__} -> {provider_class.__name__}"
            )
        cls._providers[key] = provider_class
        logger.info(f"Registered extraction provider: {key}")

    @classmethod
    def get_provider_class(cls, name: str) -> type[ExtractionProvider]:
        """Look up a provider class by name.

        Raises:
            ValueError: If no provider is registered under ``name``
        """
        provider_class = cls._providers.get(_registry_key(name))
        if provider_class is None:
            available = ", ".join(sorted(cls._providers))
            raise ValueError(
                f"Unknown extraction provider: '{name}'. Available providers: {available}"
            )
        return provider_class

    @classmethod
    def list_providers(cls) -> list[str]:
        return sorted(cls._providers)


def create_extraction_service(settings: Settings) -> ExtractionProvider:
    """Instantiate the provider configured in ``settings``.

    Args:
        settings: Application settings

    Returns:
        Provider instance bound to ``settings``

    Raises:
        ValueError: If the configured provider is not registered

    Example:
        >>> provider = create_extraction_service(Settings(extraction_provider="ubl_xml"))
        >>> result = provider.extract_document(xml_bytes, "doc-1", "application/xml")
    """
    provider = ProviderRegistry.get_provider_class(settings.extraction_provider)(settings)

    if not provider.is_available():
        logger.warning(f"Extraction provider '{provider.provider_name}' is not available")

    logger.info(f"Created extraction provider: {provider.provider_name}")
    return provider
