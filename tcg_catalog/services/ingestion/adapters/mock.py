"""
Mock source adapter for testing and development.

Generates deterministic fake cards for system testing without hitting
external APIs.
"""
import copy
import random
from typing import Optional

from tcg_catalog.core.errors import SourceFetchError
from tcg_catalog.services.ingestion.base import (
    AdapterConfig,
    SourceAdapter,
    UniversalCard,
    UniversalPrint,
)

_NAME_PARTS = (
    ("Ancient", "Blazing", "Silent", "Verdant", "Storm", "Shadow", "Radiant", "Iron"),
    ("Dragon", "Knight", "Oracle", "Serpent", "Golem", "Archer", "Wisp", "Titan"),
)
_TYPES = ("Creature", "Instant", "Sorcery", "Artifact", "Enchantment")
_RARITIES = ("Common", "Uncommon", "Rare", "Mythic Rare")
_ARTISTS = ("Rebecca Guay", "Christopher Rush", "Terese Nielsen", "John Avon")


class MockSourceAdapter(SourceAdapter):
    """
    Mock adapter that serves a fixed or generated card list.

    Pass cards to serve exactly those (deep-copied on every fetch, so the
    importer filling in hashes never leaks between runs). Pass fail_with to
    make every fetch raise.
    """

    def __init__(
        self,
        config: AdapterConfig | None = None,
        cards: list[UniversalCard] | None = None,
        card_count: int = 10,
        seed: int = 42,
        fail_with: Exception | None = None,
    ):
        if config is None:
            config = AdapterConfig(
                base_url="https://mock-source.example.com",
                rate_limit_seconds=0,
            )
        super().__init__(config)
        self._cards = cards
        self._card_count = card_count
        self._seed = seed
        self._fail_with = fail_with
        self.fetch_calls: list[tuple[str, str, Optional[int]]] = []

    @property
    def provider_name(self) -> str:
        return "Mock Source"

    @property
    def provider_slug(self) -> str:
        return "mock"

    async def fetch_cards(
        self,
        game_code: str,
        job_type: str,
        limit: Optional[int] = None,
    ) -> list[UniversalCard]:
        self.fetch_calls.append((game_code, job_type, limit))
        if self._fail_with is not None:
            raise self._fail_with

        if self._cards is not None:
            cards = copy.deepcopy(self._cards)
        else:
            cards = self.generate_cards(game_code, self._card_count)

        if limit is not None:
            cards = cards[:limit]
        return cards

    def generate_cards(self, game_code: str, count: int) -> list[UniversalCard]:
        """Generate count distinct cards, identical for the same seed."""
        if count < 0:
            raise SourceFetchError(f"Invalid mock card count: {count}")

        rng = random.Random(self._seed)
        cards = []
        for i in range(count):
            name = f"{rng.choice(_NAME_PARTS[0])} {rng.choice(_NAME_PARTS[1])} {i + 1}"
            set_code = f"MK{rng.randint(1, 3)}"
            cards.append(UniversalCard(
                oracle_id=f"mock-{game_code.lower()}-{i + 1}",
                name=name,
                primary_type=rng.choice(_TYPES),
                oracle_text=f"Mock rules text for {name}.",
                prints=[
                    UniversalPrint(
                        set_code=set_code,
                        set_name=f"Mock Set {set_code[-1]}",
                        collector_number=str(i + 1),
                        rarity=rng.choice(_RARITIES),
                        artist=rng.choice(_ARTISTS),
                        is_foil_available=rng.random() < 0.3,
                        images={
                            "normal": f"{self.config.base_url}/images/{set_code}/{i + 1}.jpg",
                        },
                    )
                ],
            ))
        return cards

    async def health_check(self) -> bool:
        """Mock adapter is always healthy."""
        return True
