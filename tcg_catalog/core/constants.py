"""
Core constants and enums for the TCG catalog.

This module provides the standardized codes used in catalog SKUs, along with
the static lookup tables the ETL pipeline needs (game to provider mapping,
image quality priority).
"""
from enum import Enum


class GameCode(str, Enum):
    """Games supported by the catalog."""
    MTG = "MTG"
    POKEMON = "POKEMON"
    YUGIOH = "YUGIOH"
    OPTCG = "OPTCG"


class ConditionCode(str, Enum):
    """
    Card condition grades used in SKUs.

    Declaration order is the order SKUs are generated in.
    """
    NEAR_MINT = "NM"
    LIGHTLY_PLAYED = "LP"
    MODERATELY_PLAYED = "MP"
    HEAVILY_PLAYED = "HP"
    DAMAGED = "DMG"


class FinishCode(str, Enum):
    """Print finishes used in SKUs."""
    NORMAL = "NORMAL"
    FOIL = "FOIL"
    REVERSE = "REVERSE"
    FIRST_EDITION = "1ST"
    UNLIMITED = "UNLTD"
    ETCHED = "ETCHED"


class LanguageCode(str, Enum):
    """Language codes used in SKUs."""
    ENGLISH = "EN"
    JAPANESE = "JP"
    GERMAN = "DE"
    FRENCH = "FR"
    SPANISH = "ES"
    ITALIAN = "IT"
    PORTUGUESE = "PT"
    RUSSIAN = "RU"
    KOREAN = "KO"
    CHINESE_SIMPLIFIED = "ZHS"
    CHINESE_TRADITIONAL = "ZHT"


class GradingCompany(str, Enum):
    PSA = "PSA"
    BGS = "BGS"
    CGC = "CGC"
    SGC = "SGC"


SKU_SEPARATOR = "-"
# Stands in for the separator inside source set codes and collector numbers
SKU_SEPARATOR_REPLACEMENT = "_"

# Every print gets one SKU per condition
SKU_CONDITIONS: tuple[str, ...] = tuple(c.value for c in ConditionCode)
DEFAULT_SKU_LANGUAGES: tuple[str, ...] = (LanguageCode.ENGLISH.value,)


# Image tiers in strict priority order. Only the first available tier is
# dispatched per print; border_crop is stored but never selected.
IMAGE_PRIORITY: tuple[str, ...] = ("png", "large", "normal", "small", "art_crop")
IMAGE_TYPES: tuple[str, ...] = IMAGE_PRIORITY + ("border_crop",)


# Provider slug used to look up the source adapter for each game
GAME_PROVIDERS: dict[str, str] = {
    GameCode.MTG.value: "scryfall",
    GameCode.POKEMON.value: "pokemon_tcg",
    GameCode.YUGIOH.value: "ygoprodeck",
    GameCode.OPTCG.value: "onepiece_tcg",
}


def get_provider_for_game(game_code: str) -> str:
    """
    Get the data provider slug for a game.

    Args:
        game_code: Catalog game code (case-insensitive).

    Returns:
        Provider slug registered in the adapter registry.

    Raises:
        ValueError: If the game is not supported.
    """
    code = game_code.upper()
    if code not in GAME_PROVIDERS:
        raise ValueError(f"Unknown game: {game_code}. Available: {list(GAME_PROVIDERS)}")
    return GAME_PROVIDERS[code]
