"""
Content hashes used as catalog identity keys.

The oracle hash identifies a card's rules identity independent of where it
was fetched from; the print hash identifies one physical printing. Both are
SHA-256 digests over a normalized, key-sorted JSON serialization, so
formatting drift between providers (case, padding, repeated spaces) never
produces a duplicate card.
"""
import hashlib
import json
import re
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w\s]")


def _normalize_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip().lower()


def _normalize_value(value: Any) -> Any:
    if isinstance(value, str):
        return _normalize_text(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        # Multi-valued game fields (colors, energy types) are sets
        items = [_normalize_value(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, dict):
        return {
            str(k): _normalize_value(v)
            for k, v in value.items()
            if v is not None
        }
    return value


def _digest(data: dict[str, Any]) -> str:
    content = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def compute_oracle_hash(
    name: str,
    primary_type: str,
    oracle_text: str | None = None,
    game_specific_fields: dict[str, Any] | None = None,
) -> str:
    """
    Compute the oracle hash for a card.

    Args:
        name: Card name.
        primary_type: Primary card type (e.g. "Instant", "Pokemon").
        oracle_text: Rules text, if any.
        game_specific_fields: Game-specific scalar fields. None values are
            ignored so adding an unset field never changes the hash.

    Returns:
        64-character hex digest.
    """
    return _digest({
        "name": _normalize_text(name),
        "type": _normalize_text(primary_type),
        "text": _normalize_text(oracle_text),
        "game_specific": _normalize_value(game_specific_fields or {}),
    })


def compute_print_hash(
    oracle_hash: str,
    set_code: str,
    collector_number: str,
    artist: str | None = None,
) -> str:
    """Compute the print hash for one printing of a card."""
    return _digest({
        "oracle_hash": oracle_hash,
        "set_code": _normalize_text(set_code),
        "collector_number": _normalize_text(collector_number),
        "artist": _normalize_text(artist),
    })


def normalize_name(name: str) -> str:
    """
    Generate a normalized name for searching.

    "Jace, the Mind Sculptor" -> "jace the mind sculptor"
    """
    return _WHITESPACE_RE.sub(" ", _NON_WORD_RE.sub("", name.lower())).strip()
