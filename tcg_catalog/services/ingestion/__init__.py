"""
Ingestion layer: canonical card model and source adapters.
"""
from tcg_catalog.services.ingestion.base import (
    AdapterConfig,
    SourceAdapter,
    UniversalCard,
    UniversalPrint,
)
from tcg_catalog.services.ingestion.registry import (
    get_adapter,
    get_adapter_for_game,
    get_available_adapters,
    register_adapter,
    unregister_adapter,
)

__all__ = [
    "AdapterConfig",
    "SourceAdapter",
    "UniversalCard",
    "UniversalPrint",
    "get_adapter",
    "get_adapter_for_game",
    "get_available_adapters",
    "register_adapter",
    "unregister_adapter",
]
