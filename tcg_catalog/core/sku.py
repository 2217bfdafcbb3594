"""
Universal catalog SKU formatting and parsing.

Format: {GAME}-{SET}-{NUMBER}-{LANG}-{CONDITION}-{FINISH}[-{GRADE}]

All components are uppercase. The optional grade suffix is the grading
company code followed by the grade value, e.g. MTG-LEA-161-EN-NM-NORMAL-PSA10.
"""
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from tcg_catalog.core.constants import (
    DEFAULT_SKU_LANGUAGES,
    SKU_CONDITIONS,
    SKU_SEPARATOR,
    SKU_SEPARATOR_REPLACEMENT,
    FinishCode,
)
from tcg_catalog.core.errors import SKUFormatError

_GRADE_RE = re.compile(r"^(?P<company>[A-Z]+)(?P<grade>\d+(?:\.\d+)?)$")


@dataclass(frozen=True)
class SKUComponents:
    """The tuple a SKU string is rendered from."""
    game_code: str
    set_code: str
    collector_number: str
    language_code: str
    condition_code: str
    finish_code: str
    grading_company: Optional[str] = None
    grade_value: Optional[str] = None

    @property
    def is_graded(self) -> bool:
        return self.grading_company is not None


def encode_sku_component(value: str) -> str:
    """
    Make a source identifier safe to use as a SKU component.

    Scryfall's The List numbers ("2XM-117") and Yu-Gi-Oh! set codes
    ("LOB-EN001") carry the separator; it is replaced with an underscore.
    """
    return value.strip().replace(SKU_SEPARATOR, SKU_SEPARATOR_REPLACEMENT)


def _check_component(label: str, value: str) -> str:
    if not value or not value.strip():
        raise SKUFormatError(f"SKU component {label} is empty")
    if SKU_SEPARATOR in value:
        raise SKUFormatError(
            f"SKU component {label}={value!r} contains separator {SKU_SEPARATOR!r}"
        )
    return value.strip().upper()


def format_sku(components: SKUComponents) -> str:
    """
    Render SKU components into the delimited SKU string.

    Raises:
        SKUFormatError: If a component is empty, contains the separator, or
            the grade information is incomplete or malformed.
    """
    parts = [
        _check_component("game_code", components.game_code),
        _check_component("set_code", components.set_code),
        _check_component("collector_number", components.collector_number),
        _check_component("language_code", components.language_code),
        _check_component("condition_code", components.condition_code),
        _check_component("finish_code", components.finish_code),
    ]

    has_company = components.grading_company is not None
    has_grade = components.grade_value is not None
    if has_company != has_grade:
        raise SKUFormatError("grading_company and grade_value must be given together")

    if has_company:
        grade = f"{components.grading_company}{components.grade_value}".upper()
        if not _GRADE_RE.match(grade):
            raise SKUFormatError(f"Invalid grade suffix: {grade!r}")
        parts.append(grade)

    return SKU_SEPARATOR.join(parts)


def parse_sku(sku: str) -> SKUComponents:
    """
    Parse a SKU string back into its components.

    Raises:
        SKUFormatError: If the string has fewer than 6 or more than 7
            segments, an empty segment, or an unparseable grade suffix.
    """
    parts = sku.split(SKU_SEPARATOR)

    if len(parts) < 6:
        raise SKUFormatError(f"SKU {sku!r} has {len(parts)} segments, expected at least 6")
    if len(parts) > 7:
        raise SKUFormatError(f"SKU {sku!r} has {len(parts)} segments, expected at most 7")
    if any(not p for p in parts):
        raise SKUFormatError(f"SKU {sku!r} contains an empty segment")

    grading_company = None
    grade_value = None
    if len(parts) == 7:
        match = _GRADE_RE.match(parts[6])
        if not match:
            raise SKUFormatError(f"Invalid grade suffix in SKU {sku!r}: {parts[6]!r}")
        grading_company = match.group("company")
        grade_value = match.group("grade")

    return SKUComponents(
        game_code=parts[0],
        set_code=parts[1],
        collector_number=parts[2],
        language_code=parts[3],
        condition_code=parts[4],
        finish_code=parts[5],
        grading_company=grading_company,
        grade_value=grade_value,
    )


def generate_sku_matrix(
    game_code: str,
    set_code: str,
    collector_number: str,
    foil_available: bool,
    languages: Iterable[str] | None = None,
) -> list[SKUComponents]:
    """
    Generate every ungraded SKU for one print.

    One SKU per condition x language x finish. Finishes are NORMAL, plus FOIL
    when the print has a foil version. Languages default to English only.
    Duplicate languages are collapsed, first occurrence wins.
    """
    langs = list(dict.fromkeys(
        lang.upper() for lang in (languages or DEFAULT_SKU_LANGUAGES)
    ))
    finishes = [FinishCode.NORMAL.value]
    if foil_available:
        finishes.append(FinishCode.FOIL.value)

    return [
        SKUComponents(
            game_code=game_code.upper(),
            set_code=set_code.upper(),
            collector_number=collector_number.upper(),
            language_code=language,
            condition_code=condition,
            finish_code=finish,
        )
        for condition in SKU_CONDITIONS
        for language in langs
        for finish in finishes
    ]
