"""
Base classes for card source adapters.

Defines the canonical card model every adapter normalizes into, and the
interface that all source adapters must implement.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class AdapterConfig:
    """Configuration for a source adapter."""
    base_url: str
    api_key: str | None = None
    rate_limit_seconds: float = 0.1
    max_retries: int = 3
    backoff_factor: float = 2.0
    timeout_seconds: float = 30.0
    user_agent: str = "TCGCatalog/1.0"
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class UniversalPrint:
    """One physical printing, as delivered by an adapter."""
    # Required fields (no defaults) - must come first
    set_code: str
    set_name: str
    collector_number: str

    # Optional fields (with defaults)
    rarity: str | None = None
    artist: str | None = None
    language: str = "EN"
    finish: str = "NORMAL"
    set_type: str | None = None

    # Flags
    is_foil_available: bool = False
    is_alternate_art: bool = False
    is_promo: bool = False
    is_first_edition: bool = False

    # Image URLs keyed by quality tier (png, large, normal, small, art_crop, border_crop)
    images: dict[str, str] = field(default_factory=dict)

    format_legality: dict[str, str] | None = None
    prices: dict[str, Any] | None = None
    external_ids: dict[str, str] = field(default_factory=dict)

    # Languages to generate SKUs for; None means English only
    sku_languages: list[str] | None = None

    # Filled in by the importer, never by the adapter
    print_hash: str = ""


# Game-specific scalar fields, grouped by game. Values that are None are
# left out of the hash and out of the stored game_fields bag.
MTG_FIELDS = ("mana_cost", "mana_value", "colors", "color_identity")
POKEMON_FIELDS = ("hp", "retreat_cost", "energy_types", "evolution_stage")
YUGIOH_FIELDS = (
    "attribute", "level_rank", "link_value", "pendulum_scale",
    "attack_value", "defense_value_yugioh",
)
ONEPIECE_FIELDS = ("cost", "don_cost", "life_value", "counter_value", "power")
SHARED_FIELDS = ("power_value", "defense_value")

GAME_FIELD_NAMES = MTG_FIELDS + POKEMON_FIELDS + YUGIOH_FIELDS + ONEPIECE_FIELDS + SHARED_FIELDS


@dataclass
class UniversalCard:
    """
    Game-agnostic normalized card.

    oracle_hash and every print_hash arrive empty; the importer computes them.
    """
    # Required fields (no defaults) - must come first
    oracle_id: str
    name: str
    primary_type: str

    normalized_name: str = ""
    oracle_hash: str = ""
    subtypes: list[str] = field(default_factory=list)
    supertypes: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    oracle_text: str | None = None
    flavor_text: str | None = None

    # MTG
    mana_cost: str | None = None
    mana_value: float | None = None
    colors: list[str] | None = None
    color_identity: list[str] | None = None

    # Pokemon
    hp: int | None = None
    retreat_cost: int | None = None
    energy_types: list[str] | None = None
    evolution_stage: str | None = None

    # Yu-Gi-Oh
    attribute: str | None = None
    level_rank: int | None = None
    link_value: int | None = None
    pendulum_scale: int | None = None
    attack_value: int | None = None
    defense_value_yugioh: int | None = None

    # One Piece
    cost: int | None = None
    don_cost: int | None = None
    life_value: int | None = None
    counter_value: int | None = None
    power: int | None = None

    # Shared
    power_value: int | None = None
    defense_value: int | None = None

    extended_attributes: dict[str, Any] = field(default_factory=dict)
    prints: list[UniversalPrint] = field(default_factory=list)

    def game_specific_fields(self) -> dict[str, Any]:
        """Game-specific values that are set, keyed by field name."""
        values = {}
        for name in GAME_FIELD_NAMES:
            value = getattr(self, name)
            if value is None:
                continue
            # Empty multi-valued fields carry no information
            if isinstance(value, list) and not value:
                continue
            values[name] = value
        return values


class SourceAdapter(ABC):
    """
    Abstract base class for card source adapters.

    Each provider (Scryfall, Pokemon TCG API, ...) implements this interface
    and normalizes its payloads into UniversalCard. Adapters only pull; they
    never touch the catalog.
    """

    def __init__(self, config: AdapterConfig):
        """
        Initialize the adapter with configuration.

        Args:
            config: Adapter configuration including URLs and credentials.
        """
        self.config = config
        self._last_request_time: datetime | None = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @property
    @abstractmethod
    def provider_slug(self) -> str:
        """Return the provider slug (lowercase, no spaces)."""
        pass

    @abstractmethod
    async def fetch_cards(
        self,
        game_code: str,
        job_type: str,
        limit: Optional[int] = None,
    ) -> list[UniversalCard]:
        """
        Fetch cards for a game and normalize them.

        Args:
            game_code: Catalog game code.
            job_type: ETL job type; adapters pick their query from it.
            limit: Maximum number of source records to fetch.

        Returns:
            List of UniversalCard objects, prints grouped under their card.

        Raises:
            SourceFetchError: If the provider cannot be reached or answers
                with something unusable.
        """
        pass

    async def health_check(self) -> bool:
        """
        Check if the provider is reachable.

        Returns:
            True if healthy, False otherwise.
        """
        return True

    async def close(self) -> None:
        """Release any network resources held by the adapter."""
        return None
