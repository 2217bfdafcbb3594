"""
One Piece Card Game adapter.

Pages through a /cards endpoint answering {"cards": [...], "total": n}.
Parallel arts share a card number and are told apart by the "_p" suffix on
their id, e.g. OP01-001 and OP01-001_p1.
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

PER_PAGE = 100
MAX_FETCH_RECORDS = 10_000

RARITY_MAP = {
    "Common": "Common",
    "Uncommon": "Uncommon",
    "Rare": "Rare",
    "Super Rare": "Mythic Rare",
    "Secret Rare": "Mythic Rare",
    "Special Rare": "Mythic Rare",
    "Leader": "Mythic Rare",
    "Promo": "Special",
}

FOIL_RARITIES = frozenset({"Super Rare", "Secret Rare", "Special Rare", "Leader"})


class OnePieceAdapter(HTTPSourceAdapter):
    """Adapter for the One Piece card API."""

    HEALTH_ENDPOINT = "/sets"

    def __init__(self, config: AdapterConfig | None = None):
        if config is None:
            config = AdapterConfig(
                base_url=settings.onepiece_base_url,
                rate_limit_seconds=settings.onepiece_rate_limit_ms / 1000,
                max_retries=settings.scraper_max_retries,
                backoff_factor=settings.scraper_backoff_factor,
                user_agent=settings.scraper_user_agent,
            )
        super().__init__(config)

    @property
    def provider_name(self) -> str:
        return "One Piece Card API"

    @property
    def provider_slug(self) -> str:
        return "onepiece_tcg"

    def build_params(self, job_type: str, today: date | None = None) -> dict[str, Any]:
        if job_type in ("incremental_sync", "image_sync"):
            since = (today or date.today()) - timedelta(days=30)
            return {"since": since.isoformat()}
        if job_type == "set_sync":
            set_code = self.config.extra.get("set_code")
            return {"set_id": set_code.upper()} if set_code else {"latest_set": "true"}
        return {}

    async def fetch_cards(
        self,
        game_code: str,
        job_type: str,
        limit: Optional[int] = None,
    ) -> list[UniversalCard]:
        params = self.build_params(job_type)
        logger.info("Starting One Piece fetch", game_code=game_code, job_type=job_type, params=params, limit=limit)

        raw_cards: list[dict[str, Any]] = []
        page = 1
        try:
            while True:
                data = await self._request("/cards", params={**params, "page": page, "per_page": PER_PAGE})
                if data is None:
                    break
                if not isinstance(data.get("cards"), list):
                    raise SourceFetchError("Unexpected response format from One Piece card API")

                records = data["cards"]
                raw_cards.extend(records)

                if limit and len(raw_cards) >= limit:
                    raw_cards = raw_cards[:limit]
                    break
                total = data.get("total")
                if len(records) < PER_PAGE or (total is not None and len(raw_cards) >= total):
                    break
                if len(raw_cards) >= MAX_FETCH_RECORDS:
                    logger.warning("Reached maximum One Piece fetch size", total=len(raw_cards))
                    break
                page += 1
        except httpx.HTTPError as e:
            raise SourceFetchError(f"One Piece fetch failed: {e}") from e

        cards = self.transform_cards(raw_cards)
        logger.info("Completed One Piece fetch", game_code=game_code, records=len(raw_cards), cards=len(cards))
        return cards

    def transform_cards(self, raw_cards: list[dict[str, Any]]) -> list[UniversalCard]:
        """Group printings by normalized name and card type, keeping first-seen order."""
        grouped: dict[tuple[str, str], list[dict[str, Any]]] = {}
        for raw in raw_cards:
            key = (normalize_name(raw.get("name", "")), raw.get("type") or "")
            grouped.setdefault(key, []).append(raw)

        return [
            self._transform_card(name, card_type, printings)
            for (name, card_type), printings in grouped.items()
        ]

    def _transform_card(
        self,
        normalized: str,
        card_type: str,
        printings: list[dict[str, Any]],
    ) -> UniversalCard:
        canonical = printings[0]
        colors = list(canonical.get("color") or [])
        families = [f.strip() for f in (canonical.get("attribute") or "").split("/") if f.strip()]

        oracle_text = canonical.get("effect")
        if canonical.get("trigger"):
            trigger = f"[Trigger] {canonical['trigger']}"
            oracle_text = f"{oracle_text}\n{trigger}" if oracle_text else trigger

        keywords = families + colors
        if canonical.get("trigger"):
            keywords.append("Trigger")

        return UniversalCard(
            oracle_id=f"onepiece_{normalized}_{card_type.lower()}",
            name=canonical.get("name", ""),
            normalized_name=normalized,
            primary_type=card_type,
            subtypes=families,
            keywords=keywords,
            oracle_text=oracle_text,
            attribute=canonical.get("attribute"),
            cost=self._parse_int(canonical.get("cost")),
            life_value=self._parse_int(canonical.get("life")),
            counter_value=self._parse_int(canonical.get("counter")),
            power=self._parse_int(canonical.get("power")),
            extended_attributes={"colors": colors} if colors else {},
            prints=[self._transform_print(p) for p in printings],
        )

    def _transform_print(self, raw: dict[str, Any]) -> UniversalPrint:
        card_id = raw.get("id") or ""
        rarity = raw.get("rarity") or ""
        number = raw.get("card_number") or ""
        parallel = card_id.split("_", 1)[1] if "_" in card_id else None
        if parallel:
            number = f"{number}_{parallel}"
        image_url = raw.get("image_url")

        return UniversalPrint(
            set_code=encode_sku_component(raw.get("set_id") or "").upper(),
            set_name=raw.get("set_name") or "",
            collector_number=encode_sku_component(number),
            rarity=RARITY_MAP.get(rarity, rarity or None),
            artist=raw.get("artist"),
            is_foil_available=rarity in FOIL_RARITIES,
            is_alternate_art=parallel is not None,
            is_promo="Promo" in rarity or "Prize" in rarity,
            images={"large": image_url} if image_url else {},
            format_legality={"standard": "legal"},
            prices={"usd": float(raw["price_usd"])} if raw.get("price_usd") else None,
            external_ids={"onepiece": card_id} if card_id else {},
        )

    @staticmethod
    def _parse_int(value: Any) -> int | None:
        try:
            return int(value) if value not in (None, "", "-") else None
        except (TypeError, ValueError):
            return None
