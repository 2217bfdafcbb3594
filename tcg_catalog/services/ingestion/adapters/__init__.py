"""
Source adapter implementations, one per data provider.

The mock adapter serves tests and local development.
"""
from tcg_catalog.services.ingestion.adapters.http import HTTPSourceAdapter
from tcg_catalog.services.ingestion.adapters.mock import MockSourceAdapter
from tcg_catalog.services.ingestion.adapters.onepiece import OnePieceAdapter
from tcg_catalog.services.ingestion.adapters.pokemon import PokemonTCGAdapter
from tcg_catalog.services.ingestion.adapters.scryfall import ScryfallAdapter
from tcg_catalog.services.ingestion.adapters.ygoprodeck import YGOProDeckAdapter

__all__ = [
    "HTTPSourceAdapter",
    "MockSourceAdapter",
    "OnePieceAdapter",
    "PokemonTCGAdapter",
    "ScryfallAdapter",
    "YGOProDeckAdapter",
]
