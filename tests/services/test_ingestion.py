"""
Tests for source adapters and the adapter registry.

Source HTTP traffic is served by httpx.MockTransport; no network access.
"""
from datetime import date

import httpx
import pytest

from tcg_catalog.core.errors import SourceFetchError
from tcg_catalog.services.ingestion import (
    get_adapter,
    get_adapter_for_game,
    get_available_adapters,
    register_adapter,
    unregister_adapter,
)
from tcg_catalog.services.ingestion.adapters import onepiece, pokemon
from tcg_catalog.services.ingestion.adapters.mock import MockSourceAdapter
from tcg_catalog.services.ingestion.adapters.onepiece import OnePieceAdapter
from tcg_catalog.services.ingestion.adapters.pokemon import PokemonTCGAdapter
from tcg_catalog.services.ingestion.adapters.scryfall import ScryfallAdapter
from tcg_catalog.services.ingestion.adapters.ygoprodeck import YGOProDeckAdapter
from tcg_catalog.services.ingestion.base import AdapterConfig

BASE_URL = "https://api.scryfall.test"


def _scryfall_card(**overrides):
    card = {
        "object": "card",
        "id": "scry-1",
        "oracle_id": "oracle-bolt",
        "name": "Lightning Bolt",
        "lang": "en",
        "type_line": "Instant",
        "oracle_text": "Lightning Bolt deals 3 damage to any target.",
        "mana_cost": "{R}",
        "cmc": 1.0,
        "colors": ["R"],
        "color_identity": ["R"],
        "set": "lea",
        "set_name": "Limited Edition Alpha",
        "set_type": "core",
        "collector_number": "161",
        "rarity": "common",
        "artist": "Christopher Rush",
        "nonfoil": True,
        "foil": False,
        "image_uris": {
            "small": "https://img.test/s.jpg",
            "normal": "https://img.test/n.jpg",
            "png": "https://img.test/p.png",
        },
        "legalities": {"modern": "not_legal", "legacy": "legal", "alchemy": "not_legal"},
        "prices": {"usd": "450.00", "usd_foil": None},
        "tcgplayer_id": 1234,
    }
    card.update(overrides)
    return card


def _scryfall_adapter(handler) -> ScryfallAdapter:
    adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL, rate_limit_seconds=0))
    adapter._client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return adapter


class TestRegistry:

    def test_get_adapter_by_slug(self):
        assert isinstance(get_adapter("mock"), MockSourceAdapter)
        assert isinstance(get_adapter("Scryfall"), ScryfallAdapter)

    def test_unknown_slug(self):
        with pytest.raises(ValueError, match="Unknown adapter"):
            get_adapter("tcgplayer")

    def test_adapter_for_game(self):
        assert isinstance(get_adapter_for_game("mtg"), ScryfallAdapter)

    def test_unknown_game(self):
        with pytest.raises(ValueError, match="Unknown game"):
            get_adapter_for_game("HEARTHSTONE")

    def test_register_and_unregister(self):
        register_adapter("lorcast", MockSourceAdapter)
        try:
            assert "lorcast" in get_available_adapters()
            assert isinstance(get_adapter("lorcast"), MockSourceAdapter)
        finally:
            unregister_adapter("lorcast")
        assert "lorcast" not in get_available_adapters()

    @pytest.mark.parametrize("game_code, adapter_class", [
        ("MTG", ScryfallAdapter),
        ("POKEMON", PokemonTCGAdapter),
        ("YUGIOH", YGOProDeckAdapter),
        ("OPTCG", OnePieceAdapter),
    ])
    def test_every_game_has_an_adapter(self, game_code, adapter_class):
        assert isinstance(get_adapter_for_game(game_code), adapter_class)

    def test_adapter_receives_custom_config(self):
        config = AdapterConfig(base_url="https://mirror.test")
        assert get_adapter("scryfall", config).config.base_url == "https://mirror.test"


class TestMockAdapter:

    @pytest.mark.asyncio
    async def test_generated_cards_are_deterministic(self):
        a = await MockSourceAdapter(card_count=5, seed=7).fetch_cards("MTG", "full_sync")
        b = await MockSourceAdapter(card_count=5, seed=7).fetch_cards("MTG", "full_sync")
        assert [c.name for c in a] == [c.name for c in b]
        assert len({c.name for c in a}) == 5

    @pytest.mark.asyncio
    async def test_limit(self):
        cards = await MockSourceAdapter(card_count=10).fetch_cards("MTG", "full_sync", limit=4)
        assert len(cards) == 4

    @pytest.mark.asyncio
    async def test_fixed_cards_are_copied_per_fetch(self, make_card):
        adapter = MockSourceAdapter(cards=[make_card()])
        first = await adapter.fetch_cards("MTG", "full_sync")
        first[0].oracle_hash = "mutated"

        second = await adapter.fetch_cards("MTG", "full_sync")

        assert second[0].oracle_hash == ""
        assert adapter.fetch_calls == [("MTG", "full_sync", None)] * 2

    @pytest.mark.asyncio
    async def test_fail_with(self):
        adapter = MockSourceAdapter(fail_with=SourceFetchError("offline"))
        with pytest.raises(SourceFetchError):
            await adapter.fetch_cards("MTG", "full_sync")
        assert await adapter.health_check()


class TestScryfallTransform:

    def test_printings_are_grouped_by_oracle_id(self):
        adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL))
        cards = adapter.transform_cards([
            _scryfall_card(),
            _scryfall_card(id="scry-2", set="2ed", set_name="Unlimited Edition", collector_number="162"),
            _scryfall_card(id="scry-3", oracle_id="oracle-ritual", name="Dark Ritual", collector_number="98"),
        ])

        assert [c.name for c in cards] == ["Lightning Bolt", "Dark Ritual"]
        bolt = cards[0]
        assert [p.set_code for p in bolt.prints] == ["LEA", "2ED"]
        assert bolt.primary_type == "Instant"
        assert bolt.mana_cost == "{R}"
        assert bolt.normalized_name == "lightning bolt"

    def test_print_fields(self):
        adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL))
        print_ = adapter.transform_cards([_scryfall_card(lang="ja", foil=True)])[0].prints[0]

        assert print_.rarity == "Common"
        assert print_.language == "JP"
        assert print_.is_foil_available
        assert print_.images == {
            "png": "https://img.test/p.png",
            "normal": "https://img.test/n.jpg",
            "small": "https://img.test/s.jpg",
        }
        assert print_.format_legality == {"modern": "not_legal", "legacy": "legal"}
        assert print_.prices == {"usd": 450.0}
        assert print_.external_ids == {"scryfall": "scry-1", "tcgplayer": "1234"}

    def test_creature_type_line(self):
        adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL))
        card = adapter.transform_cards([_scryfall_card(
            name="Karn, Silver Golem",
            type_line="Legendary Artifact Creature — Golem",
            power="4",
            toughness="4",
        )])[0]

        assert card.primary_type == "Creature"
        assert card.supertypes == ["Legendary"]
        assert card.subtypes == ["Golem"]
        assert card.power_value == 4
        assert card.defense_value == 4

    def test_double_faced_card_reads_front_face(self):
        adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL))
        raw = _scryfall_card(name="Delver of Secrets // Insectile Aberration")
        for key in ("type_line", "oracle_text", "mana_cost", "image_uris"):
            raw.pop(key)
        raw["card_faces"] = [{
            "type_line": "Creature — Human Wizard",
            "oracle_text": "At the beginning of your upkeep, look at the top card of your library.",
            "mana_cost": "{U}",
            "image_uris": {"large": "https://img.test/front.jpg"},
        }]

        card = adapter.transform_cards([raw])[0]

        assert card.primary_type == "Creature"
        assert card.mana_cost == "{U}"
        assert card.prints[0].images == {"large": "https://img.test/front.jpg"}

    @pytest.mark.parametrize("job_type, limit, expected", [
        ("full_sync", None, "game:paper"),
        ("incremental_sync", None, "game:paper date>=2026-10-11"),
        ("card_sync", None, "game:paper is:new"),
        ("full_sync", 50, "game:paper is:booster"),
    ])
    def test_build_query(self, job_type, limit, expected):
        adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL))
        assert adapter.build_query(job_type, limit, today=date(2026, 10, 18)) == expected

    def test_set_sync_query_uses_set_code(self):
        adapter = ScryfallAdapter(AdapterConfig(base_url=BASE_URL, extra={"set_code": "LEA"}))
        assert adapter.build_query("set_sync") == "game:paper set:lea"


class TestScryfallFetch:

    @pytest.mark.asyncio
    async def test_follows_pagination(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json={
                    "object": "list",
                    "has_more": False,
                    "data": [_scryfall_card(id="scry-3", oracle_id="oracle-ritual", name="Dark Ritual")],
                })
            return httpx.Response(200, json={
                "object": "list",
                "has_more": True,
                "next_page": f"{BASE_URL}/cards/search?q=game%3Apaper&page=2",
                "data": [_scryfall_card(), _scryfall_card(id="scry-2", set="2ed")],
            })

        adapter = _scryfall_adapter(handler)
        cards = await adapter.fetch_cards("MTG", "full_sync")
        await adapter.close()

        assert [c.name for c in cards] == ["Lightning Bolt", "Dark Ritual"]
        assert len(cards[0].prints) == 2

    @pytest.mark.asyncio
    async def test_limit_stops_paging(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={
                "object": "list",
                "has_more": True,
                "next_page": f"{BASE_URL}/cards/search?page=2",
                "data": [_scryfall_card(id=f"scry-{i}", collector_number=str(i)) for i in range(5)],
            })

        adapter = _scryfall_adapter(handler)
        cards = await adapter.fetch_cards("MTG", "full_sync", limit=3)

        assert len(requests) == 1
        assert len(cards[0].prints) == 3

    @pytest.mark.asyncio
    async def test_no_results_is_empty(self):
        adapter = _scryfall_adapter(lambda request: httpx.Response(404, json={"object": "error"}))
        assert await adapter.fetch_cards("MTG", "incremental_sync") == []

    @pytest.mark.asyncio
    async def test_server_error_raises_fetch_error(self):
        adapter = _scryfall_adapter(lambda request: httpx.Response(500, json={"object": "error"}))
        with pytest.raises(SourceFetchError):
            await adapter.fetch_cards("MTG", "full_sync")

    @pytest.mark.asyncio
    async def test_unexpected_payload_raises_fetch_error(self):
        adapter = _scryfall_adapter(lambda request: httpx.Response(200, json={"object": "card"}))
        with pytest.raises(SourceFetchError, match="Unexpected response"):
            await adapter.fetch_cards("MTG", "full_sync")

    @pytest.mark.asyncio
    async def test_the_list_collector_number_is_encoded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "object": "list",
                "has_more": False,
                "data": [_scryfall_card(id="scry-plst", set="plst", collector_number="2XM-117")],
            })

        adapter = _scryfall_adapter(handler)
        [card] = await adapter.fetch_cards("MTG", "card_sync")

        assert card.prints[0].set_code == "PLST"
        assert card.prints[0].collector_number == "2XM_117"


def _mocked(adapter, handler):
    adapter._client = httpx.AsyncClient(
        base_url=adapter.config.base_url,
        transport=httpx.MockTransport(handler),
        headers=adapter._default_headers(),
    )
    return adapter


def _pokemon_card(**overrides):
    card = {
        "id": "base1-4",
        "name": "Charizard",
        "supertype": "Pokémon",
        "subtypes": ["Stage 2"],
        "hp": "120",
        "types": ["Fire"],
        "evolvesFrom": "Charmeleon",
        "abilities": [{"name": "Energy Burn", "text": "Turn all Energy into Fire Energy.", "type": "Pokémon Power"}],
        "attacks": [{"name": "Fire Spin", "cost": ["Fire", "Fire"], "damage": "100", "text": "Discard 2 Energy."}],
        "convertedRetreatCost": 3,
        "number": "4",
        "artist": "Mitsuhiro Arita",
        "rarity": "Rare Holo",
        "set": {"id": "base1", "name": "Base", "series": "Base", "ptcgoCode": "BS"},
        "legalities": {"unlimited": "Legal"},
        "images": {"small": "https://img.test/4.png", "large": "https://img.test/4_hires.png"},
        "tcgplayer": {"prices": {"holofoil": {"market": 350.5}}},
    }
    card.update(overrides)
    return card


class TestPokemonAdapter:

    def _adapter(self, **config):
        return PokemonTCGAdapter(AdapterConfig(base_url="https://api.pokemon.test", rate_limit_seconds=0, **config))

    def test_printings_grouped_by_name_and_supertype(self):
        cards = self._adapter().transform_cards([
            _pokemon_card(),
            _pokemon_card(id="base2-4", number="4", set={"id": "base4", "name": "Base Set 2", "ptcgoCode": "B2"}),
            _pokemon_card(id="sv3pt5-6", name="Charizard", supertype="Trainer", subtypes=["Item"]),
        ])

        assert [(c.name, c.primary_type) for c in cards] == [("Charizard", "Pokemon"), ("Charizard", "Trainer")]
        charizard = cards[0]
        assert [p.set_code for p in charizard.prints] == ["BS", "B2"]
        assert charizard.oracle_id != cards[1].oracle_id
        assert charizard.hp == 120
        assert charizard.retreat_cost == 3
        assert charizard.energy_types == ["Fire"]
        assert charizard.evolution_stage == "Stage 2"
        assert "Fire Spin (FireFire) - 100" in charizard.oracle_text

    def test_print_fields(self):
        print_ = self._adapter().transform_cards([_pokemon_card()])[0].prints[0]

        assert print_.collector_number == "4"
        assert print_.rarity == "Rare"
        assert print_.is_foil_available
        assert print_.images == {"large": "https://img.test/4_hires.png", "small": "https://img.test/4.png"}
        assert print_.format_legality == {"unlimited": "legal"}
        assert print_.prices == {"usd": 350.5}
        assert print_.external_ids == {"pokemon_tcg": "base1-4"}

    def test_oracle_id_is_stable_across_runs(self):
        first = self._adapter().transform_cards([_pokemon_card()])[0]
        second = self._adapter().transform_cards([_pokemon_card(id="base2-4")])[0]
        assert first.oracle_id == second.oracle_id

    def test_separator_in_number_is_encoded(self):
        print_ = self._adapter().transform_cards([_pokemon_card(number="SWSH-001")])[0].prints[0]
        assert print_.collector_number == "SWSH_001"

    @pytest.mark.parametrize("job_type, limit, expected", [
        ("full_sync", 50, "supertype:pokemon"),
        ("full_sync", 500, "(supertype:pokemon OR supertype:trainer)"),
        ("incremental_sync", None, "set.releaseDate:[2026/09/18 TO *]"),
        ("full_sync", None, "(supertype:pokemon OR supertype:trainer OR supertype:energy)"),
    ])
    def test_build_query(self, job_type, limit, expected):
        assert self._adapter().build_query(job_type, limit, today=date(2026, 10, 18)) == expected

    def test_set_sync_query(self):
        adapter = self._adapter(extra={"set_code": "SV3PT5"})
        assert adapter.build_query("set_sync") == "set.id:sv3pt5"

    @pytest.mark.asyncio
    async def test_pages_until_total_count(self, monkeypatch):
        monkeypatch.setattr(pokemon, "PAGE_SIZE", 2)
        pages = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page"])
            pages.append(page)
            return httpx.Response(200, json={
                "data": [_pokemon_card(id=f"p{page}-{i}", name=f"Card {page}-{i}") for i in range(2)],
                "totalCount": 4,
            })

        adapter = _mocked(self._adapter(), handler)
        cards = await adapter.fetch_cards("POKEMON", "full_sync")
        await adapter.close()

        assert pages == [1, 2]
        assert len(cards) == 4

    @pytest.mark.asyncio
    async def test_api_key_is_sent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("X-Api-Key"))
            return httpx.Response(200, json={"data": [], "totalCount": 0})

        adapter = _mocked(self._adapter(api_key="secret"), handler)
        assert await adapter.fetch_cards("POKEMON", "full_sync") == []
        assert seen == ["secret"]

    @pytest.mark.asyncio
    async def test_unexpected_payload_raises_fetch_error(self):
        adapter = _mocked(self._adapter(), lambda request: httpx.Response(200, json={"error": "nope"}))
        with pytest.raises(SourceFetchError, match="Unexpected response"):
            await adapter.fetch_cards("POKEMON", "full_sync")


def _ygo_card(**overrides):
    card = {
        "id": 46986414,
        "name": "Dark Magician",
        "type": "Normal Monster",
        "frameType": "normal",
        "desc": "The ultimate wizard in terms of attack and defense.",
        "atk": 2500,
        "def": 2100,
        "level": 7,
        "race": "Spellcaster",
        "attribute": "DARK",
        "archetype": "Dark Magician",
        "card_sets": [
            {"set_name": "Legend of Blue Eyes White Dragon", "set_code": "LOB-005",
             "set_rarity": "Ultra Rare", "set_rarity_code": "(UR)"},
            {"set_name": "Legend of Blue Eyes White Dragon", "set_code": "LOB-005",
             "set_rarity": "Ultra Rare", "set_rarity_code": "(UR)"},
            {"set_name": "Starter Deck: Yugi", "set_code": "SDY-006",
             "set_rarity": "Common", "set_rarity_code": "(C)"},
        ],
        "card_images": [{
            "image_url": "https://img.test/46986414.jpg",
            "image_url_small": "https://img.test/small/46986414.jpg",
            "image_url_cropped": "https://img.test/cropped/46986414.jpg",
        }],
        "card_prices": [{"tcgplayer_price": "0.25", "cardmarket_price": "0.00"}],
    }
    card.update(overrides)
    return card


class TestYGOProDeckAdapter:

    def _adapter(self, **config):
        return YGOProDeckAdapter(AdapterConfig(base_url="https://api.ygo.test", rate_limit_seconds=0, **config))

    def test_card_fields(self):
        [card] = self._adapter().transform_cards([_ygo_card()])

        assert card.primary_type == "Monster"
        assert card.subtypes == ["Spellcaster"]
        assert card.supertypes == ["Normal"]
        assert card.attribute == "DARK"
        assert card.level_rank == 7
        assert card.attack_value == 2500
        assert card.defense_value_yugioh == 2100
        assert "Dark Magician" in card.keywords

    def test_set_appearances_become_encoded_prints(self):
        [card] = self._adapter().transform_cards([_ygo_card()])

        assert [(p.set_code, p.collector_number) for p in card.prints] == [
            ("LOB", "LOB_005_UR"),
            ("SDY", "SDY_006_C"),
        ]
        ultra, common = card.prints
        assert ultra.is_foil_available and ultra.finish == "FOIL"
        assert not common.is_foil_available and common.finish == "NORMAL"
        assert ultra.rarity == "Mythic Rare"
        assert ultra.format_legality == {"tcg": "legal", "ocg": "legal"}
        assert ultra.prices == {"usd": 0.25}
        assert ultra.images["art_crop"] == "https://img.test/cropped/46986414.jpg"

    def test_card_without_sets_gets_placeholder_print(self):
        [card] = self._adapter().transform_cards([_ygo_card(card_sets=[])])
        assert [(p.set_code, p.collector_number) for p in card.prints] == [("UNKNOWN", "UNK_46986414")]

    @pytest.mark.parametrize("card_type, primary", [
        ("Spell Card", "Spell"),
        ("Trap Card", "Trap"),
        ("Skill Card", "Skill"),
        ("XYZ Monster", "Monster"),
    ])
    def test_extract_primary_type(self, card_type, primary):
        assert YGOProDeckAdapter.extract_primary_type(card_type) == primary

    def test_banlist_status(self):
        [card] = self._adapter().transform_cards([_ygo_card(banlist_info={"ban_tcg": "Limited"})])
        assert card.prints[0].format_legality == {"tcg": "limited", "ocg": "legal"}

    def test_build_params(self):
        adapter = self._adapter(extra={"set_name": "Legend of Blue Eyes White Dragon"})
        assert adapter.build_params("set_sync", limit=10) == {
            "cardset": "Legend of Blue Eyes White Dragon", "num": 10, "offset": 0,
        }
        assert adapter.build_params("incremental_sync", today=date(2026, 10, 18)) == {
            "startdate": "2026-09-18", "enddate": "2026-10-18", "dateregion": "tcg",
        }

    @pytest.mark.asyncio
    async def test_fetch(self):
        adapter = _mocked(self._adapter(), lambda request: httpx.Response(200, json={"data": [_ygo_card()]}))
        cards = await adapter.fetch_cards("YUGIOH", "full_sync")
        assert [c.name for c in cards] == ["Dark Magician"]

    @pytest.mark.asyncio
    async def test_no_match_is_empty(self):
        adapter = _mocked(
            self._adapter(),
            lambda request: httpx.Response(400, json={"error": "No card matching your query was found"}),
        )
        assert await adapter.fetch_cards("YUGIOH", "incremental_sync") == []

    @pytest.mark.asyncio
    async def test_server_error_raises_fetch_error(self):
        adapter = _mocked(self._adapter(), lambda request: httpx.Response(503))
        with pytest.raises(SourceFetchError):
            await adapter.fetch_cards("YUGIOH", "full_sync")


def _op_card(**overrides):
    card = {
        "id": "OP01-001",
        "card_number": "OP01-001",
        "name": "Roronoa Zoro",
        "type": "Leader",
        "color": ["Red"],
        "attribute": "Slash",
        "power": "5000",
        "life": "5",
        "cost": None,
        "counter": "-",
        "effect": "[DON!! x1] [Your Turn] All of your Characters gain +1000 power.",
        "rarity": "Leader",
        "set_id": "OP01",
        "set_name": "Romance Dawn",
        "artist": "Eiichiro Oda",
        "image_url": "https://img.test/OP01-001.png",
        "price_usd": "1.50",
    }
    card.update(overrides)
    return card


class TestOnePieceAdapter:

    def _adapter(self, **config):
        return OnePieceAdapter(AdapterConfig(base_url="https://api.onepiece.test", rate_limit_seconds=0, **config))

    def test_parallel_art_is_a_second_print(self):
        [card] = self._adapter().transform_cards([
            _op_card(),
            _op_card(id="OP01-001_p1", image_url="https://img.test/OP01-001_p1.png"),
        ])

        assert card.oracle_id == "onepiece_roronoa zoro_leader"
        assert card.primary_type == "Leader"
        assert card.power == 5000
        assert card.life_value == 5
        assert card.counter_value is None
        assert card.cost is None
        assert [p.collector_number for p in card.prints] == ["OP01_001", "OP01_001_p1"]
        assert [p.is_alternate_art for p in card.prints] == [False, True]
        assert card.prints[0].set_code == "OP01"
        assert card.prints[0].is_foil_available
        assert card.prints[0].prices == {"usd": 1.5}

    def test_trigger_is_appended_to_text(self):
        [card] = self._adapter().transform_cards([
            _op_card(id="OP01-016", card_number="OP01-016", name="Nami", type="Character",
                     trigger="Play this card.", rarity="Rare"),
        ])
        assert card.oracle_text.endswith("[Trigger] Play this card.")
        assert "Trigger" in card.keywords

    @pytest.mark.asyncio
    async def test_pages_until_short_page(self, monkeypatch):
        monkeypatch.setattr(onepiece, "PER_PAGE", 2)
        pages = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page"])
            pages.append(page)
            count = 2 if page == 1 else 1
            return httpx.Response(200, json={
                "cards": [_op_card(id=f"OP0{page}-00{i}", name=f"Card {page}-{i}") for i in range(count)],
            })

        adapter = _mocked(self._adapter(), handler)
        cards = await adapter.fetch_cards("OPTCG", "full_sync")

        assert pages == [1, 2]
        assert len(cards) == 3

    def test_set_sync_params(self):
        assert self._adapter(extra={"set_code": "op05"}).build_params("set_sync") == {"set_id": "OP05"}
        assert self._adapter().build_params("set_sync") == {"latest_set": "true"}
