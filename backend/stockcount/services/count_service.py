# backend/stockcount/services/count_service.py
"""
Counting session service.

WHY: Operators scan the same product many times during a count (several
shelves, the store floor and the stockroom). Every scan must land on one
accumulation record per (product, expiry date) instead of piling up rows.

LIFECYCLE:
1. open: created lazily on the first recorded count of a user
2. closed: user cleared the count; its items are deleted

MERGE RULE:
- (session, product, expiry) is unique; "no expiry" is its own key
- a scan adds its quantity to exactly one side (store or stockroom)
- the merge is one INSERT ... ON CONFLICT DO UPDATE statement, so two
  concurrent scans of the same key serialize in the database

Nothing here commits; callers commit (or use run_and_commit) so that an
operation either fully lands or leaves no trace.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from stockcount.extensions import db
from stockcount.models import CountSession, CountedItem, Product
from stockcount.models.counts import SESSION_STATUS_CLOSED, SESSION_STATUS_OPEN, expiry_key_for
from stockcount.services.catalog_service import catalog_owner_id
from stockcount.services.concurrency import lock_for_update, run_with_retry, upsert_insert
from stockcount.time_utils import utcnow
from stockcount.validation import (
    MODE_STOCKROOM,
    MODE_STORE,
    ConflictError,
    NotFoundError,
    ValidationError,
    from_hundredths,
    to_hundredths,
)


@dataclass(frozen=True)
class CountStats:
    items: int
    total_loja: Decimal
    total_estoque: Decimal


def get_open_session(user_id: int) -> CountSession | None:
    return db.session.query(CountSession).filter_by(
        user_id=user_id,
        status=SESSION_STATUS_OPEN,
    ).first()


def get_or_open_session(user_id: int) -> CountSession:
    """
    Return the user's open session, creating it if there is none.

    Two requests racing to open the first session both run the insert; the
    partial unique index lets exactly one through and the other does nothing.
    """
    existing = get_open_session(user_id)
    if existing:
        return existing

    stmt = upsert_insert(CountSession).values(
        user_id=user_id,
        status=SESSION_STATUS_OPEN,
        created_at=utcnow(),
    ).on_conflict_do_nothing()
    result = db.session.execute(stmt)
    if result.rowcount:
        current_app.logger.info("Opened count session for user %s", user_id)

    return db.session.query(CountSession).filter_by(
        user_id=user_id,
        status=SESSION_STATUS_OPEN,
    ).one()


def record_count(
    user_id: int,
    product_id: int,
    quantity: Decimal,
    mode: str,
    expiry_date: date | None = None,
) -> CountedItem:
    """
    Add a scanned quantity to the user's open count.

    Args:
        user_id: Counting user (tenant)
        product_id: Product of the master catalog; ids from any other
            owner's products are treated as unknown
        quantity: Non-negative quantity, already evaluated
        mode: "store" or "stockroom"
        expiry_date: Optional expiry; None is its own merge key

    Returns:
        CountedItem: The merged record, with product loaded

    Raises:
        ValidationError: bad mode or negative quantity
        NotFoundError: unknown product, or not in the master catalog
        ConflictError: uniqueness violated despite the upsert
    """
    if mode not in (MODE_STORE, MODE_STOCKROOM):
        raise ValidationError(f"Invalid mode: {mode!r}")
    if quantity < 0:
        raise ValidationError("quantity cannot be negative")

    delta = to_hundredths(quantity)
    store_delta = delta if mode == MODE_STORE else 0
    stockroom_delta = delta if mode == MODE_STOCKROOM else 0
    expiry_key = expiry_key_for(expiry_date)

    owner_id = catalog_owner_id()

    def _op():
        product = db.session.query(Product).filter_by(id=product_id, user_id=owner_id).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        count_session = get_or_open_session(user_id)
        now = utcnow()

        stmt = upsert_insert(CountedItem).values(
            count_session_id=count_session.id,
            product_id=product_id,
            expiry_date=expiry_date,
            expiry_key=expiry_key,
            store_qty_hundredths=store_delta,
            stockroom_qty_hundredths=stockroom_delta,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["count_session_id", "product_id", "expiry_key"],
            set_={
                "store_qty_hundredths": CountedItem.store_qty_hundredths + stmt.excluded.store_qty_hundredths,
                "stockroom_qty_hundredths": (
                    CountedItem.stockroom_qty_hundredths + stmt.excluded.stockroom_qty_hundredths
                ),
                "updated_at": stmt.excluded.updated_at,
            },
        )
        db.session.execute(stmt)

        return (
            db.session.query(CountedItem)
            .options(joinedload(CountedItem.product).selectinload(Product.barcodes))
            .filter_by(
                count_session_id=count_session.id,
                product_id=product_id,
                expiry_key=expiry_key,
            )
            .populate_existing()
            .one()
        )

    try:
        return run_with_retry(_op)
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            "Duplicate counted item for the same product and expiry date"
        ) from exc


def list_active(user_id: int) -> list[CountedItem]:
    """
    Items of the user's open session, most recently modified first.

    Returns an empty list when the user has no open session.
    """
    return (
        db.session.query(CountedItem)
        .join(CountSession, CountedItem.count_session_id == CountSession.id)
        .options(joinedload(CountedItem.product).selectinload(Product.barcodes))
        .filter(
            CountSession.user_id == user_id,
            CountSession.status == SESSION_STATUS_OPEN,
        )
        .order_by(CountedItem.updated_at.desc(), CountedItem.id.desc())
        .all()
    )


def remove_item(user_id: int, item_id: int) -> None:
    """
    Delete one counted item from the user's open session.

    SECURITY: The delete is filtered by the caller's open session, so an id
    that belongs to another user behaves exactly like an unknown id.
    """
    count_session = get_open_session(user_id)
    if not count_session:
        raise NotFoundError("No open count for this user")

    deleted = db.session.query(CountedItem).filter_by(
        id=item_id,
        count_session_id=count_session.id,
    ).delete(synchronize_session=False)

    if not deleted:
        current_app.logger.warning(
            "User %s tried to remove counted item %s outside their open count", user_id, item_id
        )
        raise NotFoundError(f"Counted item {item_id} not found in your open count")


def clear_session(user_id: int) -> int:
    """
    Discard the user's open count: delete its items and close the session.

    Returns the number of items deleted. No open session is a no-op (0).
    The next recorded count opens a fresh session.
    """
    def _op():
        count_session = lock_for_update(
            db.session.query(CountSession).filter_by(user_id=user_id, status=SESSION_STATUS_OPEN)
        ).first()
        if not count_session:
            return 0

        deleted = db.session.query(CountedItem).filter_by(
            count_session_id=count_session.id
        ).delete(synchronize_session=False)

        count_session.status = SESSION_STATUS_CLOSED
        count_session.closed_at = utcnow()
        db.session.flush()

        current_app.logger.info(
            "Cleared count session %s for user %s (%s items)", count_session.id, user_id, deleted
        )
        return deleted

    return run_with_retry(_op)


def get_stats(user_id: int) -> CountStats:
    """Totals over the open count: item count and per-location sums."""
    row = (
        db.session.query(
            db.func.count(CountedItem.id),
            db.func.coalesce(db.func.sum(CountedItem.store_qty_hundredths), 0),
            db.func.coalesce(db.func.sum(CountedItem.stockroom_qty_hundredths), 0),
        )
        .join(CountSession, CountedItem.count_session_id == CountSession.id)
        .filter(
            CountSession.user_id == user_id,
            CountSession.status == SESSION_STATUS_OPEN,
        )
        .one()
    )
    return CountStats(
        items=int(row[0] or 0),
        total_loja=from_hundredths(int(row[1] or 0)),
        total_estoque=from_hundredths(int(row[2] or 0)),
    )
