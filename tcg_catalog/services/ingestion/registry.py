"""
Adapter registry for card source adapters.

Adapters are looked up by provider slug; the game to provider mapping lives
in tcg_catalog.core.constants.

Adapters are never cached: HTTP clients are bound to the event loop they were
created in, and each Celery task runs in a new event loop.
"""
import structlog
from typing import Type

from tcg_catalog.core.constants import get_provider_for_game
from tcg_catalog.services.ingestion.base import AdapterConfig, SourceAdapter
from tcg_catalog.services.ingestion.adapters.mock import MockSourceAdapter
from tcg_catalog.services.ingestion.adapters.onepiece import OnePieceAdapter
from tcg_catalog.services.ingestion.adapters.pokemon import PokemonTCGAdapter
from tcg_catalog.services.ingestion.adapters.scryfall import ScryfallAdapter
from tcg_catalog.services.ingestion.adapters.ygoprodeck import YGOProDeckAdapter

logger = structlog.get_logger()

# Registry of available adapters
_ADAPTER_REGISTRY: dict[str, Type[SourceAdapter]] = {
    "scryfall": ScryfallAdapter,
    "pokemon_tcg": PokemonTCGAdapter,
    "ygoprodeck": YGOProDeckAdapter,
    "onepiece_tcg": OnePieceAdapter,
    "mock": MockSourceAdapter,
}


def register_adapter(slug: str, adapter_class: Type[SourceAdapter]) -> None:
    """
    Register a new adapter type.

    Args:
        slug: Unique identifier for the adapter.
        adapter_class: The adapter class to register.
    """
    _ADAPTER_REGISTRY[slug] = adapter_class
    logger.info("Registered source adapter", slug=slug, adapter=adapter_class.__name__)


def unregister_adapter(slug: str) -> None:
    _ADAPTER_REGISTRY.pop(slug, None)


def get_adapter(slug: str, config: AdapterConfig | None = None) -> SourceAdapter:
    """
    Get a new adapter instance by slug.

    Args:
        slug: Adapter identifier.
        config: Optional custom configuration.

    Returns:
        Adapter instance.

    Raises:
        ValueError: If slug is not registered.
    """
    slug = slug.lower()

    if slug not in _ADAPTER_REGISTRY:
        raise ValueError(f"Unknown adapter: {slug}. Available: {list(_ADAPTER_REGISTRY.keys())}")

    adapter_class = _ADAPTER_REGISTRY[slug]
    if config:
        return adapter_class(config)
    return adapter_class()


def get_adapter_for_game(game_code: str, config: AdapterConfig | None = None) -> SourceAdapter:
    """
    Get the source adapter for a game's provider.

    Raises:
        ValueError: If the game is unknown or its provider has no adapter.
    """
    return get_adapter(get_provider_for_game(game_code), config)


def get_available_adapters() -> list[str]:
    """Get list of available adapter slugs."""
    return list(_ADAPTER_REGISTRY.keys())
