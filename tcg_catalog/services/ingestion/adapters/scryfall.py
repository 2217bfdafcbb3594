"""
Scryfall adapter for Magic: The Gathering card data.

Scryfall is the canonical MTG source: one search result per printing, with
oracle_id tying printings of the same card together.
"""
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

TYPE_LINE_DASH = "\u2014"

PRIMARY_TYPES = ("Creature", "Planeswalker", "Instant", "Sorcery", "Artifact", "Enchantment", "Land", "Battle")
SUPERTYPES = ("Basic", "Legendary", "Snow", "World", "Ongoing")

RARITY_MAP = {
    "common": "Common",
    "uncommon": "Uncommon",
    "rare": "Rare",
    "mythic": "Mythic Rare",
    "special": "Special",
    "bonus": "Bonus",
}

# Scryfall language codes to catalog SKU language codes
LANGUAGE_MAP = {
    "en": "EN", "ja": "JP", "de": "DE", "fr": "FR", "es": "ES", "it": "IT",
    "pt": "PT", "ru": "RU", "ko": "KO", "zhs": "ZHS", "zht": "ZHT",
}

LEGALITY_FORMATS = (
    "standard", "pioneer", "modern", "legacy", "vintage",
    "commander", "brawl", "historic", "pauper",
)

IMAGE_KEYS = ("png", "large", "normal", "small", "art_crop", "border_crop")

# Upper bound on records pulled by one unbounded fetch
MAX_FETCH_RECORDS = 100_000


class ScryfallAdapter(HTTPSourceAdapter):
    """
    Adapter for the Scryfall API.

    Pages through /cards/search and groups printings by oracle_id into
    UniversalCard objects.
    """

    HEALTH_ENDPOINT = "/cards/random"

    def __init__(self, config: AdapterConfig | None = None):
        if config is None:
            config = AdapterConfig(
                base_url=settings.scryfall_base_url,
                rate_limit_seconds=settings.scryfall_rate_limit_ms / 1000,
                max_retries=settings.scraper_max_retries,
                backoff_factor=settings.scraper_backoff_factor,
                user_agent=settings.scraper_user_agent,
            )
        super().__init__(config)

    @property
    def provider_name(self) -> str:
        return "Scryfall"

    @property
    def provider_slug(self) -> str:
        return "scryfall"

    def build_query(self, job_type: str, limit: Optional[int] = None, today: date | None = None) -> str:
        """
        Build the Scryfall search query for a job type.

        Small limited runs use a broad query that always has results.
        """
        if limit and limit <= 100:
            return "game:paper is:booster"

        if job_type == "full_sync":
            return "game:paper"
        if job_type in ("incremental_sync", "image_sync"):
            since = (today or date.today()) - timedelta(days=7)
            return f"game:paper date>={since.isoformat()}"
        if job_type == "set_sync":
            set_code = self.config.extra.get("set_code")
            return f"game:paper set:{set_code.lower()}" if set_code else "game:paper is:new"
        if job_type == "card_sync":
            return self.config.extra.get("query") or "game:paper is:new"
        return "game:paper is:new"

    async def fetch_cards(
        self,
        game_code: str,
        job_type: str,
        limit: Optional[int] = None,
    ) -> list[UniversalCard]:
        """Fetch printings matching the job's query, grouped into cards."""
        query = self.build_query(job_type, limit)
        logger.info("Starting Scryfall fetch", game_code=game_code, job_type=job_type, query=query, limit=limit)

        raw_cards: list[dict[str, Any]] = []
        endpoint: str | None = "/cards/search"
        params: dict | None = {"q": query, "unique": "prints", "order": "set"}

        try:
            while endpoint:
                data = await self._request(endpoint, params=params)
                if data is None:
                    break
                if data.get("object") != "list":
                    raise SourceFetchError(
                        f"Unexpected response format from Scryfall: {data.get('object')}"
                    )

                raw_cards.extend(data.get("data", []))

                if limit and len(raw_cards) >= limit:
                    raw_cards = raw_cards[:limit]
                    break
                if len(raw_cards) >= MAX_FETCH_RECORDS:
                    logger.warning("Reached maximum Scryfall fetch size", total=len(raw_cards))
                    break

                # next_page is an absolute URL that already carries the query
                endpoint = data.get("next_page") if data.get("has_more") else None
                params = None
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Scryfall fetch failed: {e}") from e

        cards = self.transform_cards(raw_cards)
        logger.info(
            "Completed Scryfall fetch",
            game_code=game_code,
            records=len(raw_cards),
            cards=len(cards),
        )
        return cards

    def transform_cards(self, raw_cards: list[dict[str, Any]]) -> list[UniversalCard]:
        """Group Scryfall printings by oracle_id, keeping first-seen order."""
        grouped: dict[str, list[dict[str, Any]]] = {}
        for raw in raw_cards:
            oracle_id = raw.get("oracle_id") or self._face_value(raw, "oracle_id") or raw.get("id")
            grouped.setdefault(oracle_id, []).append(raw)

        return [
            self._transform_card(oracle_id, printings)
            for oracle_id, printings in grouped.items()
        ]

    def _transform_card(self, oracle_id: str, printings: list[dict[str, Any]]) -> UniversalCard:
        canonical = printings[0]
        type_line = canonical.get("type_line") or self._face_value(canonical, "type_line") or ""
        name = canonical.get("name", "")

        return UniversalCard(
            oracle_id=oracle_id,
            name=name,
            normalized_name=normalize_name(name),
            primary_type=self.extract_primary_type(type_line),
            subtypes=self.extract_subtypes(type_line),
            supertypes=self.extract_supertypes(type_line),
            keywords=list(canonical.get("keywords") or []),
            oracle_text=canonical.get("oracle_text") or self._face_value(canonical, "oracle_text"),
            flavor_text=canonical.get("flavor_text"),
            mana_cost=canonical.get("mana_cost") or self._face_value(canonical, "mana_cost"),
            mana_value=canonical.get("cmc"),
            colors=list(canonical.get("colors") or []),
            color_identity=list(canonical.get("color_identity") or []),
            power_value=self._parse_numeric(canonical.get("power")),
            defense_value=self._parse_numeric(canonical.get("toughness")),
            extended_attributes={
                k: canonical[k]
                for k in ("layout", "loyalty", "produced_mana", "edhrec_rank")
                if canonical.get(k) is not None
            },
            prints=[self._transform_print(p) for p in printings],
        )

    def _transform_print(self, raw: dict[str, Any]) -> UniversalPrint:
        image_uris = raw.get("image_uris") or self._face_value(raw, "image_uris") or {}
        prices = raw.get("prices") or {}
        lang = (raw.get("lang") or "en").lower()

        return UniversalPrint(
            set_code=encode_sku_component(raw.get("set") or "").upper(),
            set_name=raw.get("set_name") or "",
            set_type=raw.get("set_type"),
            collector_number=encode_sku_component(raw.get("collector_number") or ""),
            rarity=RARITY_MAP.get(raw.get("rarity", ""), raw.get("rarity")),
            artist=raw.get("artist"),
            language=LANGUAGE_MAP.get(lang, lang.upper()),
            finish="NORMAL" if raw.get("nonfoil", True) else "FOIL",
            is_foil_available=bool(raw.get("foil")),
            is_alternate_art=bool(raw.get("variation")),
            is_promo=bool(raw.get("promo")),
            images={k: image_uris[k] for k in IMAGE_KEYS if image_uris.get(k)},
            format_legality=self._extract_legality(raw.get("legalities")),
            prices={
                k: float(v) for k, v in prices.items()
                if k in ("usd", "usd_foil", "eur", "eur_foil", "tix") and v
            } or None,
            external_ids={
                k: str(v) for k, v in (
                    ("scryfall", raw.get("id")),
                    ("tcgplayer", raw.get("tcgplayer_id")),
                    ("cardmarket", raw.get("cardmarket_id")),
                ) if v is not None
            },
        )

    @staticmethod
    def _face_value(raw: dict[str, Any], key: str) -> Any:
        """Read a field from the front face of a multi-faced card."""
        faces = raw.get("card_faces") or []
        if faces:
            return faces[0].get(key)
        return None

    @staticmethod
    def extract_primary_type(type_line: str) -> str:
        """Most specific recognized card type, e.g. "Creature" for "Artifact Creature"."""
        types = type_line.split(TYPE_LINE_DASH)[0].split("//")[0].split()
        for t in reversed(types):
            if t in PRIMARY_TYPES:
                return t
        return types[-1] if types else "Unknown"

    @staticmethod
    def extract_subtypes(type_line: str) -> list[str]:
        parts = type_line.split("//")[0].split(TYPE_LINE_DASH)
        if len(parts) > 1:
            return parts[1].split()
        return []

    @staticmethod
    def extract_supertypes(type_line: str) -> list[str]:
        types = type_line.split(TYPE_LINE_DASH)[0].split()
        return [t for t in types if t in SUPERTYPES]

    @staticmethod
    def _parse_numeric(value: str | None) -> int | None:
        """Parse power/toughness; variable values like * or X give None."""
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @staticmethod
    def _extract_legality(legalities: dict[str, str] | None) -> dict[str, str] | None:
        if not legalities:
            return None
        legality = {f: legalities[f] for f in LEGALITY_FORMATS if legalities.get(f)}
        return legality or None
