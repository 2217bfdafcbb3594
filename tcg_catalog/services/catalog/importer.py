"""
Per-card atomic import.

One card and all of its prints and SKUs are written in a single
transaction. Image tasks are dispatched only after that transaction has
committed, so a queued image always refers to a stored print.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tcg_catalog.core.constants import SKU_SEPARATOR
from tcg_catalog.core.errors import (
    CardValidationError,
    ETLException,
    ETLError,
    ETLErrorType,
)
from tcg_catalog.core.hashing import compute_oracle_hash, compute_print_hash, normalize_name
from tcg_catalog.core.sku import format_sku, generate_sku_matrix
from tcg_catalog.db.transaction import atomic
from tcg_catalog.models.card import Card
from tcg_catalog.models.card_set import CardSet
from tcg_catalog.models.catalog_sku import CatalogSKU
from tcg_catalog.models.printing import ImageProcessingStatus, Print
from tcg_catalog.services.catalog.context import JobContext
from tcg_catalog.services.catalog.images import (
    ImageTask,
    dispatch_image_tasks,
    record_image_status,
)
from tcg_catalog.services.catalog.results import CardImportResult
from tcg_catalog.services.ingestion.base import UniversalCard, UniversalPrint

logger = structlog.get_logger()


class _CardInsertConflict(Exception):
    """A concurrent writer inserted the same oracle hash first."""


@dataclass
class _PersistOutcome:
    card_id: Optional[int] = None
    created: bool = False
    updated: bool = False
    skipped: bool = False
    prints_created: int = 0
    prints_updated: int = 0
    skus_generated: int = 0
    image_tasks: list[ImageTask] = field(default_factory=list)


def _blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_card(card: UniversalCard) -> None:
    """
    Check the fields the importer depends on.

    Raises:
        CardValidationError: If the card cannot be imported as given.
    """
    if _blank(card.name):
        raise CardValidationError("Card name is required")
    if _blank(card.primary_type):
        raise CardValidationError(f"Card {card.name!r} has no primary type")

    for index, print_ in enumerate(card.prints):
        for label, value in (
            ("set code", print_.set_code),
            ("collector number", print_.collector_number),
            ("language", print_.language),
            ("finish", print_.finish),
        ):
            if _blank(value):
                raise CardValidationError(f"Print {index} of {card.name!r} has no {label}")
        # Adapters encode the separator; anything left would split the SKU
        for label, value in (("set code", print_.set_code), ("collector number", print_.collector_number)):
            if SKU_SEPARATOR in value:
                raise CardValidationError(
                    f"Print {index} of {card.name!r} has {label} {value!r} "
                    f"containing the SKU separator {SKU_SEPARATOR!r}"
                )


def assign_hashes(card: UniversalCard) -> str:
    """Compute and store the oracle hash and every print hash on the card."""
    card.oracle_hash = compute_oracle_hash(
        card.name,
        card.primary_type,
        card.oracle_text,
        card.game_specific_fields(),
    )
    for print_ in card.prints:
        print_.print_hash = compute_print_hash(
            card.oracle_hash,
            print_.set_code,
            print_.collector_number,
            print_.artist,
        )
    return card.oracle_hash


async def import_card(card: UniversalCard, ctx: JobContext) -> CardImportResult:
    """
    Import one card with all of its prints and SKUs.

    Never raises for per-card problems: validation and database failures come
    back as a failed result carrying an ETLError.
    """
    card_name = card.name or "<unnamed>"
    try:
        validate_card(card)
    except CardValidationError as e:
        logger.warning("Card failed validation", card_name=card_name, error=str(e))
        return CardImportResult.failed(card_name, e.to_error({"oracle_id": card.oracle_id}))

    oracle_hash = assign_hashes(card)
    if not card.normalized_name:
        card.normalized_name = normalize_name(card.name)

    async with ctx.hash_lock(oracle_hash):
        try:
            set_ids = await _ensure_sets(ctx, card.prints)
            outcome = await _persist_card(card, set_ids, ctx)
        except _CardInsertConflict:
            logger.info("Card inserted concurrently, skipping", card_name=card_name, oracle_hash=oracle_hash)
            return CardImportResult.skip(card_name, oracle_hash)
        except SQLAlchemyError as e:
            logger.warning(
                "Card transaction failed",
                card_name=card_name,
                oracle_hash=oracle_hash,
                error=str(e),
            )
            return CardImportResult.failed(
                card_name,
                ETLError.of(
                    ETLErrorType.DATABASE_ERROR,
                    f"Failed to import {card_name}: {e}",
                    {"oracle_hash": oracle_hash, "error_class": type(e).__name__},
                ),
                oracle_hash=oracle_hash,
            )
        except ETLException as e:
            logger.warning("Card rejected during import", card_name=card_name, error=str(e))
            return CardImportResult.failed(card_name, e.to_error({"oracle_hash": oracle_hash}), oracle_hash)
        except Exception as e:
            # Database failures arrive as SQLAlchemyError; anything else came
            # from mapping this card's data and will fail the same way again
            logger.error("Card data could not be mapped", card_name=card_name, error=str(e), exc_info=True)
            return CardImportResult.failed(
                card_name,
                ETLError.of(
                    ETLErrorType.VALIDATION_ERROR,
                    f"Malformed card data for {card_name}: {e}",
                    {"oracle_hash": oracle_hash, "error_class": type(e).__name__},
                ),
                oracle_hash=oracle_hash,
            )

    if outcome.skipped:
        logger.debug("Card already imported, skipping", card_name=card_name, oracle_hash=oracle_hash)
        return CardImportResult.skip(card_name, oracle_hash, outcome.card_id)

    images_queued = 0
    if outcome.image_tasks:
        queued, failed = await dispatch_image_tasks(
            outcome.image_tasks, ctx.image_dispatcher, ctx.breakers, ctx.game_code
        )
        await record_image_status(ctx.session_maker, queued, failed)
        images_queued = len(queued)

    logger.debug(
        "Card imported",
        card_name=card_name,
        created=outcome.created,
        prints_created=outcome.prints_created,
        skus_generated=outcome.skus_generated,
        images_queued=images_queued,
    )
    return CardImportResult(
        success=True,
        card_name=card_name,
        oracle_hash=oracle_hash,
        card_id=outcome.card_id,
        card_created=outcome.created,
        card_updated=outcome.updated,
        prints_created=outcome.prints_created,
        prints_updated=outcome.prints_updated,
        skus_generated=outcome.skus_generated,
        images_queued=images_queued,
    )


async def _ensure_sets(ctx: JobContext, prints: list[UniversalPrint]) -> dict[str, int]:
    """
    Get or create the set rows referenced by the prints.

    Sets are shared reference data, so they are written in their own short
    transaction ahead of the card transaction. A set that loses an insert
    race is read back instead.
    """
    set_ids: dict[str, int] = {}
    for print_ in prints:
        code = print_.set_code.upper()
        if code in set_ids:
            continue

        async with ctx.session_maker() as session:
            existing = await _find_set(session, ctx.game_code, code)
            if existing is not None:
                set_ids[code] = existing.id
                continue

            try:
                async with atomic(session, "create set"):
                    card_set = CardSet(
                        game_code=ctx.game_code,
                        code=code,
                        name=print_.set_name or code,
                        set_type=print_.set_type,
                    )
                    session.add(card_set)
                    await session.flush()
                    set_ids[code] = card_set.id
            except IntegrityError:
                existing = await _find_set(session, ctx.game_code, code)
                if existing is None:
                    raise
                set_ids[code] = existing.id
    return set_ids


async def _find_set(session: AsyncSession, game_code: str, code: str) -> Optional[CardSet]:
    return await session.scalar(
        select(CardSet).where(CardSet.game_code == game_code, CardSet.code == code)
    )


async def _persist_card(
    card: UniversalCard,
    set_ids: dict[str, int],
    ctx: JobContext,
) -> _PersistOutcome:
    outcome = _PersistOutcome()
    config = ctx.config

    async with ctx.session_maker() as session:
        async with atomic(session, "card import"):
            card_row = await session.scalar(
                select(Card).where(Card.oracle_hash == card.oracle_hash)
            )

            if card_row is not None and not config.force_update:
                outcome.card_id = card_row.id
                prints_to_write = []
                if config.backfill_new_prints:
                    prints_to_write = await _unstored_prints(session, card.prints)
                if not prints_to_write:
                    outcome.skipped = True
                    return outcome
                outcome.updated = True
            elif card_row is not None:
                _apply_card_fields(card_row, card, ctx.game_code)
                card_row.last_synced_at = datetime.now(timezone.utc)
                outcome.card_id = card_row.id
                outcome.updated = True
                prints_to_write = card.prints
            else:
                card_row = Card(oracle_hash=card.oracle_hash)
                _apply_card_fields(card_row, card, ctx.game_code)
                session.add(card_row)
                try:
                    await session.flush()
                except IntegrityError as e:
                    raise _CardInsertConflict() from e
                outcome.card_id = card_row.id
                outcome.created = True
                prints_to_write = card.prints

            image_sources: list[tuple[int, dict[str, str]]] = []
            for print_ in prints_to_write:
                print_row, created = await _upsert_print(
                    session, card_row.id, set_ids[print_.set_code.upper()], print_
                )
                if created:
                    outcome.prints_created += 1
                else:
                    outcome.prints_updated += 1
                outcome.skus_generated += await _write_skus(session, print_row, print_, ctx.game_code)
                # Read while the row is attached; commit may expire it
                if print_.images and not config.skip_images:
                    image_sources.append((print_row.id, print_.images))

    # Tasks are only built once the transaction has committed
    for print_id, images in image_sources:
        task = ImageTask.for_print(print_id, images)
        if task is not None:
            outcome.image_tasks.append(task)
    return outcome


async def _unstored_prints(session: AsyncSession, prints: list[UniversalPrint]) -> list[UniversalPrint]:
    """Prints whose hash is not in the catalog yet."""
    hashes = [p.print_hash for p in prints]
    if not hashes:
        return []
    stored = set(await session.scalars(
        select(Print.print_hash).where(Print.print_hash.in_(hashes))
    ))
    return [p for p in prints if p.print_hash not in stored]


def _apply_card_fields(card_row: Card, card: UniversalCard, game_code: str) -> None:
    card_row.game_code = game_code
    card_row.oracle_id = card.oracle_id
    card_row.name = card.name.strip()
    card_row.normalized_name = card.normalized_name
    card_row.primary_type = card.primary_type.strip()
    card_row.subtypes = list(card.subtypes)
    card_row.supertypes = list(card.supertypes)
    card_row.keywords = list(card.keywords)
    card_row.oracle_text = card.oracle_text
    card_row.flavor_text = card.flavor_text
    card_row.game_fields = card.game_specific_fields()
    card_row.extended_attributes = dict(card.extended_attributes)


async def _upsert_print(
    session: AsyncSession,
    card_id: int,
    set_id: int,
    print_: UniversalPrint,
) -> tuple[Print, bool]:
    """Insert the print, or refresh the stored one with the same print hash."""
    print_row = await session.scalar(
        select(Print).where(Print.print_hash == print_.print_hash)
    )
    created = print_row is None
    if created:
        print_row = Print(print_hash=print_.print_hash, card_id=card_id)
        session.add(print_row)

    print_row.set_id = set_id
    print_row.set_code = print_.set_code.upper()
    print_row.collector_number = print_.collector_number
    print_row.rarity = print_.rarity
    print_row.artist = print_.artist
    print_row.language = print_.language.upper()
    print_row.finish = print_.finish.upper()
    print_row.is_foil_available = print_.is_foil_available
    print_row.is_alternate_art = print_.is_alternate_art
    print_row.is_promo = print_.is_promo
    print_row.is_first_edition = print_.is_first_edition
    print_row.images = dict(print_.images) or None
    print_row.format_legality = print_.format_legality
    print_row.prices = print_.prices
    print_row.external_ids = dict(print_.external_ids) or None
    if created:
        print_row.image_processing_status = (
            ImageProcessingStatus.PENDING.value if print_.images else ImageProcessingStatus.SKIPPED.value
        )

    await session.flush()
    return print_row, created


async def _write_skus(
    session: AsyncSession,
    print_row: Print,
    print_: UniversalPrint,
    game_code: str,
) -> int:
    """Insert the print's SKU matrix, leaving SKUs that already exist alone."""
    matrix = generate_sku_matrix(
        game_code,
        print_.set_code,
        print_.collector_number,
        print_.is_foil_available,
        print_.sku_languages,
    )
    skus = {format_sku(components): components for components in matrix}

    existing = set(await session.scalars(
        select(CatalogSKU.sku).where(CatalogSKU.sku.in_(list(skus)))
    ))
    created = 0
    for sku, components in skus.items():
        if sku in existing:
            continue
        session.add(CatalogSKU.from_components(print_row.id, sku, components))
        created += 1

    if created:
        await session.flush()
    return created
