"""
YGOPRODeck adapter for Yu-Gi-Oh! card data.

cardinfo.php returns one record per card with its set appearances nested, so
each record becomes one card and each set appearance one print.
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

ORACLE_NAMESPACE = uuid.UUID("6ba7b814-9dad-11d1-80b4-00c04fd430c8")

RARITY_MAP = {
    "Common": "Common",
    "Short Print": "Common",
    "Rare": "Rare",
    "Super Rare": "Rare",
    "Ultra Rare": "Mythic Rare",
    "Secret Rare": "Mythic Rare",
    "Ultimate Rare": "Mythic Rare",
    "Ghost Rare": "Mythic Rare",
    "Starlight Rare": "Mythic Rare",
    "Prismatic Secret Rare": "Mythic Rare",
    "Quarter Century Secret Rare": "Mythic Rare",
}

FOIL_RARITIES = frozenset({
    "Super Rare", "Ultra Rare", "Secret Rare", "Ultimate Rare", "Ghost Rare",
    "Starlight Rare", "Prismatic Secret Rare", "Quarter Century Secret Rare",
})

PROMO_SET_PREFIXES = ("PROMO", "JUMP", "YAP", "GLD", "TU", "YCS")

# Substring of the card type -> subtype tag
TYPE_TAGS = (
    ("Pendulum", "Pendulum"),
    ("Synchro", "Synchro"),
    ("XYZ", "Xyz"),
    ("Link", "Link"),
    ("Fusion", "Fusion"),
    ("Ritual", "Ritual"),
    ("Tuner", "Tuner"),
)


class YGOProDeckAdapter(HTTPSourceAdapter):
    """Adapter for the YGOPRODeck v7 API."""

    HEALTH_ENDPOINT = "/checkDBVer.php"
    # An empty search is answered with 400 "No card matching your query"
    NO_RESULT_STATUSES = (400, 404)

    def __init__(self, config: AdapterConfig | None = None):
        if config is None:
            config = AdapterConfig(
                base_url=settings.ygoprodeck_base_url,
                rate_limit_seconds=settings.ygoprodeck_rate_limit_ms / 1000,
                max_retries=settings.scraper_max_retries,
                backoff_factor=settings.scraper_backoff_factor,
                user_agent=settings.scraper_user_agent,
            )
        super().__init__(config)

    @property
    def provider_name(self) -> str:
        return "YGOPRODeck"

    @property
    def provider_slug(self) -> str:
        return "ygoprodeck"

    def build_params(self, job_type: str, limit: Optional[int] = None, today: date | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if job_type in ("incremental_sync", "image_sync"):
            since = (today or date.today()) - timedelta(days=30)
            params.update(startdate=since.isoformat(), enddate=(today or date.today()).isoformat(), dateregion="tcg")
        elif job_type == "set_sync" and self.config.extra.get("set_name"):
            params["cardset"] = self.config.extra["set_name"]
        elif job_type == "card_sync" and self.config.extra.get("query"):
            params["fname"] = self.config.extra["query"]
        if limit:
            params.update(num=limit, offset=0)
        return params

    async def fetch_cards(
        self,
        game_code: str,
        job_type: str,
        limit: Optional[int] = None,
    ) -> list[UniversalCard]:
        """Fetch cards in one request; the API pages only when num is given."""
        params = self.build_params(job_type, limit)
        logger.info("Starting YGOPRODeck fetch", game_code=game_code, job_type=job_type, params=params)

        try:
            data = await self._request("/cardinfo.php", params=params)
        except httpx.HTTPError as e:
            raise SourceFetchError(f"YGOPRODeck fetch failed: {e}") from e

        if data is None:
            raw_cards = []
        elif isinstance(data.get("data"), list):
            raw_cards = data["data"]
        else:
            raise SourceFetchError("Unexpected response format from YGOPRODeck")

        if limit:
            raw_cards = raw_cards[:limit]

        cards = self.transform_cards(raw_cards)
        logger.info("Completed YGOPRODeck fetch", game_code=game_code, records=len(raw_cards), cards=len(cards))
        return cards

    def transform_cards(self, raw_cards: list[dict[str, Any]]) -> list[UniversalCard]:
        return [self._transform_card(raw) for raw in raw_cards]

    def _transform_card(self, raw: dict[str, Any]) -> UniversalCard:
        card_type = raw.get("type") or ""
        name = raw.get("name", "")

        return UniversalCard(
            oracle_id=str(uuid.uuid5(ORACLE_NAMESPACE, f"yugioh_{raw.get('id')}")),
            name=name,
            normalized_name=normalize_name(name),
            primary_type=self.extract_primary_type(card_type),
            subtypes=self.extract_subtypes(raw.get("race"), card_type),
            supertypes=[t for t in ("Effect", "Normal") if t in card_type],
            keywords=[
                k for k in [raw.get("archetype"), raw.get("attribute"), *(raw.get("linkmarkers") or [])]
                if k
            ],
            oracle_text=raw.get("desc"),
            attribute=raw.get("attribute"),
            level_rank=raw.get("level"),
            link_value=raw.get("linkval"),
            pendulum_scale=raw.get("scale"),
            attack_value=raw.get("atk"),
            defense_value_yugioh=raw.get("def"),
            extended_attributes={"frame_type": raw["frameType"]} if raw.get("frameType") else {},
            prints=self._transform_prints(raw),
        )

    def _transform_prints(self, raw: dict[str, Any]) -> list[UniversalPrint]:
        card_id = raw.get("id")
        shared = dict(
            images=self._extract_images(raw),
            format_legality=self._extract_legality(raw.get("banlist_info")),
            prices=self._extract_prices(raw),
            external_ids={"ygoprodeck": str(card_id)} if card_id is not None else {},
        )

        card_sets = raw.get("card_sets") or []
        if not card_sets:
            return [UniversalPrint(
                set_code="UNKNOWN",
                set_name="Unknown Set",
                collector_number=f"UNK_{card_id}",
                rarity="Common",
                **shared,
            )]

        prints: dict[str, UniversalPrint] = {}
        for card_set in card_sets:
            full_code = card_set.get("set_code") or ""
            rarity = card_set.get("set_rarity") or ""
            # The same set number can be printed at several rarities
            rarity_code = (card_set.get("set_rarity_code") or "").strip("()")
            number = encode_sku_component(full_code)
            if rarity_code:
                number = f"{number}_{rarity_code}"
            if number in prints:
                continue

            foil = rarity in FOIL_RARITIES
            prints[number] = UniversalPrint(
                set_code=encode_sku_component(full_code.split("-")[0]).upper(),
                set_name=card_set.get("set_name") or "",
                collector_number=number,
                rarity=RARITY_MAP.get(rarity, rarity or None),
                finish="FOIL" if foil else "NORMAL",
                is_foil_available=foil,
                is_alternate_art="Alternate Art" in rarity or "Alt Art" in rarity,
                is_promo=full_code.upper().startswith(PROMO_SET_PREFIXES),
                **shared,
            )
        return list(prints.values())

    @staticmethod
    def extract_primary_type(card_type: str) -> str:
        for primary in ("Spell", "Trap", "Skill"):
            if primary in card_type:
                return primary
        return "Monster"

    @staticmethod
    def extract_subtypes(race: str | None, card_type: str) -> list[str]:
        subtypes = [race] if race else []
        subtypes.extend(tag for marker, tag in TYPE_TAGS if marker in card_type)
        return subtypes

    @staticmethod
    def _extract_images(raw: dict[str, Any]) -> dict[str, str]:
        card_images = raw.get("card_images") or []
        if not card_images:
            return {}
        first = card_images[0]
        images = {
            "large": first.get("image_url"),
            "small": first.get("image_url_small"),
            "art_crop": first.get("image_url_cropped"),
        }
        return {k: v for k, v in images.items() if v}

    @staticmethod
    def _extract_legality(banlist_info: dict[str, str] | None) -> dict[str, str]:
        """TCG and OCG status; cards missing from the banlist are legal."""
        banlist_info = banlist_info or {}
        return {
            fmt: (banlist_info.get(f"ban_{fmt}") or "legal").lower()
            for fmt in ("tcg", "ocg")
        }

    @staticmethod
    def _extract_prices(raw: dict[str, Any]) -> dict[str, float] | None:
        card_prices = raw.get("card_prices") or []
        if not card_prices:
            return None
        first = card_prices[0]
        prices = {}
        for key, source in (("usd", "tcgplayer_price"), ("eur", "cardmarket_price")):
            try:
                value = float(first.get(source) or 0)
            except ValueError:
                continue
            if value:
                prices[key] = value
        return prices or None
