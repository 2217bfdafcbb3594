"""
Pokemon TCG API adapter.

The API returns one record per printing. Printings are grouped into a card by
normalized name and supertype, since the API has no oracle identity.
"""
import uuid
from datetime import date, timedelta
from typing import Any, Optional

import httpx
import structlog

from tcg_catalog.core.config import settings
from tcg_catalog.core.errors import SourceFetchError
from tcg_catalog.core.hashing import normalize_name
from tcg_catalog.core.sku import encode_sku_component
from tcg_catalog.services.ingestion.adapters.http import HTTPSourceAdapter
from tcg_catalog.services.ingestion.base import (
    AdapterConfig,
    UniversalCard,
    UniversalPrint,
)

logger = structlog.get_logger()

PAGE_SIZE = 250
MAX_FETCH_RECORDS = 50_000

# Stable oracle ids for cards the API does not identify across printings
ORACLE_NAMESPACE = uuid.UUID("6ba7b815-9dad-11d1-80b4-00c04fd430c8")

RARITY_MAP = {
    "Common": "Common",
    "Uncommon": "Uncommon",
    "Rare": "Rare",
    "Rare Holo": "Rare",
    "Rare Holo EX": "Mythic Rare",
    "Rare Holo GX": "Mythic Rare",
    "Rare Holo V": "Mythic Rare",
    "Rare Holo VMAX": "Mythic Rare",
    "Rare Secret": "Mythic Rare",
    "Rare Rainbow": "Mythic Rare",
    "Promo": "Special",
}

FOIL_RARITY_MARKERS = ("Holo", "Secret", "Rainbow")
FOIL_PRICE_KEYS = ("holofoil", "reverseHolofoil", "1stEditionHolofoil")
LEGALITY_FORMATS = ("standard", "expanded", "unlimited")
EVOLUTION_STAGES = ("Basic", "Stage 1", "Stage 2", "VMAX", "VSTAR")


class PokemonTCGAdapter(HTTPSourceAdapter):
    """
    Adapter for api.pokemontcg.io.

    Pages through /cards with the largest page size the API allows.
    """

    HEALTH_ENDPOINT = "/sets"

    def __init__(self, config: AdapterConfig | None = None):
        if config is None:
            config = AdapterConfig(
                base_url=settings.pokemon_tcg_base_url,
                api_key=settings.pokemon_tcg_api_key,
                rate_limit_seconds=settings.pokemon_tcg_rate_limit_ms / 1000,
                max_retries=settings.scraper_max_retries,
                backoff_factor=settings.scraper_backoff_factor,
                user_agent=settings.scraper_user_agent,
            )
        super().__init__(config)
        if not self.config.api_key:
            logger.warning("Pokemon TCG API key not configured, using anonymous rate limits")

    @property
    def provider_name(self) -> str:
        return "Pokemon TCG API"

    @property
    def provider_slug(self) -> str:
        return "pokemon_tcg"

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        if self.config.api_key:
            headers["X-Api-Key"] = self.config.api_key
        return headers

    def build_query(self, job_type: str, limit: Optional[int] = None, today: date | None = None) -> str:
        """
        Build the Lucene-style search query for a job type.

        Limited runs use broad supertype queries that always have results.
        """
        if limit:
            if limit <= 100:
                return "supertype:pokemon"
            if limit <= 1000:
                return "(supertype:pokemon OR supertype:trainer)"

        if job_type in ("incremental_sync", "image_sync"):
            since = (today or date.today()) - timedelta(days=30)
            return f"set.releaseDate:[{since.strftime('%Y/%m/%d')} TO *]"
        if job_type == "set_sync":
            set_code = self.config.extra.get("set_code")
            if set_code:
                return f"set.id:{set_code.lower()}"
        if job_type == "card_sync" and self.config.extra.get("query"):
            return self.config.extra["query"]
        return "(supertype:pokemon OR supertype:trainer OR supertype:energy)"

    async def fetch_cards(
        self,
        game_code: str,
        job_type: str,
        limit: Optional[int] = None,
    ) -> list[UniversalCard]:
        query = self.build_query(job_type, limit)
        logger.info("Starting Pokemon TCG fetch", game_code=game_code, job_type=job_type, query=query, limit=limit)

        raw_cards: list[dict[str, Any]] = []
        page = 1
        page_size = min(limit, PAGE_SIZE) if limit else PAGE_SIZE

        try:
            while True:
                data = await self._request(
                    "/cards",
                    params={"q": query, "page": page, "pageSize": page_size, "orderBy": "set.releaseDate"},
                )
                if data is None:
                    break
                if not isinstance(data.get("data"), list):
                    raise SourceFetchError("Unexpected response format from Pokemon TCG API")

                records = data["data"]
                raw_cards.extend(records)

                if limit and len(raw_cards) >= limit:
                    raw_cards = raw_cards[:limit]
                    break
                total = data.get("totalCount")
                if len(records) < page_size or (total is not None and len(raw_cards) >= total):
                    break
                if len(raw_cards) >= MAX_FETCH_RECORDS:
                    logger.warning("Reached maximum Pokemon TCG fetch size", total=len(raw_cards))
                    break
                page += 1
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Pokemon TCG fetch failed: {e}") from e

        cards = self.transform_cards(raw_cards)
        logger.info("Completed Pokemon TCG fetch", game_code=game_code, records=len(raw_cards), cards=len(cards))
        return cards

    def transform_cards(self, raw_cards: list[dict[str, Any]]) -> list[UniversalCard]:
        """Group printings by normalized name and supertype, keeping first-seen order."""
        grouped: dict[tuple[str, str], list[dict[str, Any]]] = {}
        for raw in raw_cards:
            key = (normalize_name(raw.get("name", "")), self._supertype(raw))
            grouped.setdefault(key, []).append(raw)

        return [
            self._transform_card(name, supertype, printings)
            for (name, supertype), printings in grouped.items()
        ]

    @staticmethod
    def _supertype(raw: dict[str, Any]) -> str:
        # The API spells it "Pokémon"
        supertype = raw.get("supertype") or ""
        return "Pokemon" if supertype.startswith("Pok") else supertype

    def _transform_card(
        self,
        normalized: str,
        supertype: str,
        printings: list[dict[str, Any]],
    ) -> UniversalCard:
        canonical = printings[0]
        subtypes = list(canonical.get("subtypes") or [])

        return UniversalCard(
            oracle_id=str(uuid.uuid5(ORACLE_NAMESPACE, f"pokemon_{normalized}_{supertype}")),
            name=canonical.get("name", ""),
            normalized_name=normalized,
            primary_type=supertype,
            subtypes=subtypes,
            supertypes=[supertype] if supertype else [],
            keywords=self._keywords(canonical, supertype),
            oracle_text=self.build_oracle_text(canonical),
            flavor_text=canonical.get("flavorText"),
            hp=self._parse_int(canonical.get("hp")),
            retreat_cost=canonical.get("convertedRetreatCost"),
            energy_types=list(canonical.get("types") or []) or None,
            evolution_stage=next((s for s in subtypes if s in EVOLUTION_STAGES), None),
            extended_attributes={
                k: canonical[k]
                for k in ("evolvesFrom", "nationalPokedexNumbers")
                if canonical.get(k)
            },
            prints=[self._transform_print(p) for p in printings],
        )

    def _transform_print(self, raw: dict[str, Any]) -> UniversalPrint:
        card_set = raw.get("set") or {}
        set_id = card_set.get("id") or ""
        rarity = raw.get("rarity") or ""
        images = raw.get("images") or {}
        tcgplayer_prices = (raw.get("tcgplayer") or {}).get("prices") or {}

        return UniversalPrint(
            set_code=encode_sku_component(card_set.get("ptcgoCode") or set_id).upper(),
            set_name=card_set.get("name") or "",
            set_type=card_set.get("series"),
            collector_number=encode_sku_component(raw.get("number") or ""),
            rarity=RARITY_MAP.get(rarity, rarity or None),
            artist=raw.get("artist"),
            is_foil_available=(
                any(marker in rarity for marker in FOIL_RARITY_MARKERS)
                or any(key in tcgplayer_prices for key in FOIL_PRICE_KEYS)
            ),
            is_alternate_art="Alt Art" in rarity or "Alt Art" in (raw.get("name") or ""),
            is_promo="promo" in set_id.lower() or rarity == "Promo",
            is_first_edition="1stEditionHolofoil" in tcgplayer_prices or "1stEditionNormal" in tcgplayer_prices,
            images={k: images[k] for k in ("large", "small") if images.get(k)},
            format_legality=self._extract_legality(raw.get("legalities")),
            prices=self._extract_prices(tcgplayer_prices),
            external_ids={"pokemon_tcg": raw["id"]} if raw.get("id") else {},
        )

    @staticmethod
    def build_oracle_text(raw: dict[str, Any]) -> str | None:
        """Rules text assembled from abilities, attacks and printed rules."""
        sections = []
        for ability in raw.get("abilities") or []:
            sections.append(f"{ability.get('type', 'Ability')}: {ability.get('name', '')}\n{ability.get('text', '')}")
        for attack in raw.get("attacks") or []:
            header = attack.get("name", "")
            if attack.get("cost"):
                header += f" ({''.join(attack['cost'])})"
            if attack.get("damage"):
                header += f" - {attack['damage']}"
            sections.append(f"{header}\n{attack['text']}" if attack.get("text") else header)
        sections.extend(raw.get("rules") or [])
        return "\n\n".join(sections) or None

    @staticmethod
    def _keywords(raw: dict[str, Any], supertype: str) -> list[str]:
        keywords = []
        if raw.get("evolvesFrom"):
            keywords.append("Evolution")
        if supertype in ("Trainer", "Energy"):
            keywords.append(supertype)
        keywords.extend(raw.get("types") or [])
        return keywords

    @staticmethod
    def _parse_int(value: str | None) -> int | None:
        try:
            return int(value) if value else None
        except ValueError:
            return None

    @staticmethod
    def _extract_legality(legalities: dict[str, str] | None) -> dict[str, str] | None:
        if not legalities:
            return None
        legality = {f: legalities[f].lower() for f in LEGALITY_FORMATS if legalities.get(f)}
        return legality or None

    @staticmethod
    def _extract_prices(prices: dict[str, Any]) -> dict[str, float] | None:
        """Market price of the most relevant variant, holofoil first."""
        for variant in ("holofoil", "normal", "reverseHolofoil"):
            market = (prices.get(variant) or {}).get("market")
            if market:
                return {"usd": float(market)}
        return None
