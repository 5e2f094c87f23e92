# Overview: Offline queue & sync; persisted connectivity flag and FIFO replay of offline sales.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError

from ..extensions import db
from ..models import GiftCardPayment, OfflineQueueEntry, SyncState, Transaction, TransactionLine
from poscore.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .concurrency import run_atomic
from .errors import SyncError
from . import notification_service
"""
Offline semantics:
- While offline, a committed sale still moves stock, gift-card balances and
  loyalty points; only the Transaction row is parked in offline_queue.
- The queue is flushed FIFO (by position) into transactions in a single DB
  transaction. On any failure nothing is inserted and the queue is kept.
- There is no de-duplication: an id already present in transactions fails
  the whole flush.
"""


SYNC_STATE_ID = 1


def get_sync_state() -> SyncState:
    state = db.session.get(SyncState, SYNC_STATE_ID)
    if state is None:
        state = SyncState(id=SYNC_STATE_ID, is_online=True)
        db.session.add(state)
        db.session.flush()
    return state


def is_online() -> bool:
    state = db.session.get(SyncState, SYNC_STATE_ID)
    return True if state is None else bool(state.is_online)


def serialize_transaction(tx: Transaction) -> dict:
    """JSON payload for a transaction that is not (yet) in the canonical table."""
    return {
        "id": tx.id,
        "customer_id": tx.customer_id,
        "subtotal_cents": tx.subtotal_cents,
        "discount_cents": tx.discount_cents,
        "promotion_code": tx.promotion_code,
        "total_cents": tx.total_cents,
        "created_at": to_utc_z(tx.created_at),
        "payment_status": tx.payment_status,
        "payment_method": tx.payment_method,
        "order_status": tx.order_status,
        "lines": [
            {
                "product_id": line.product_id,
                "name": line.name,
                "unit_price_cents": line.unit_price_cents,
                "quantity": line.quantity,
            }
            for line in tx.lines
        ],
        "gift_card_payments": [
            {"gift_card_id": p.gift_card_id, "amount_cents": p.amount_cents}
            for p in tx.gift_card_payments
        ],
    }


def restore_transaction(payload: dict) -> Transaction:
    tx = Transaction(
        id=payload["id"],
        customer_id=payload["customer_id"],
        subtotal_cents=payload["subtotal_cents"],
        discount_cents=payload.get("discount_cents", 0),
        promotion_code=payload.get("promotion_code"),
        total_cents=payload["total_cents"],
        created_at=parse_iso_datetime(payload.get("created_at")) or utcnow(),
        payment_status=payload.get("payment_status", "unpaid"),
        payment_method=payload.get("payment_method"),
        order_status=payload.get("order_status", "Delivered"),
    )
    tx.lines = [TransactionLine(**line) for line in payload.get("lines", [])]
    tx.gift_card_payments = [GiftCardPayment(**p) for p in payload.get("gift_card_payments", [])]
    return tx


def enqueue_transaction(tx: Transaction) -> OfflineQueueEntry:
    """Park a transient transaction in the queue. Does not commit."""
    entry = OfflineQueueEntry(transaction_id=tx.id, payload=serialize_transaction(tx))
    db.session.add(entry)
    return entry


def pending_offline_transactions() -> list[dict]:
    entries = db.session.query(OfflineQueueEntry).order_by(OfflineQueueEntry.position.asc()).all()
    return [entry.to_dict() for entry in entries]


def queued_transaction_ids() -> set[str]:
    return {row.transaction_id for row in db.session.query(OfflineQueueEntry.transaction_id).all()}


def flush_offline_queue() -> list[str]:
    """Replay queued sales into the canonical store. Returns the flushed ids in order."""
    def _op():
        entries = db.session.query(OfflineQueueEntry).order_by(OfflineQueueEntry.position.asc()).all()
        if not entries:
            return []

        flushed = []
        for entry in entries:
            db.session.add(restore_transaction(entry.payload))
            flushed.append(entry.transaction_id)
        for entry in entries:
            db.session.delete(entry)

        try:
            db.session.flush()
        except (IntegrityError, FlushError) as exc:
            raise SyncError(
                "Offline queue flush failed; queued transactions were kept",
                details={"transaction_ids": flushed},
            ) from exc

        get_sync_state().last_synced_at = utcnow()
        return flushed

    flushed = run_atomic(_op)
    if flushed:
        current_app.logger.info("Flushed %d offline transaction(s)", len(flushed))
    return flushed


def set_online(flag: bool) -> dict:
    """
    Persist the connectivity flag.

    Going from offline to online triggers a flush. A failed flush keeps the
    queue for the next attempt and is reported, not raised.
    """
    def _op():
        state = get_sync_state()
        was_online = bool(state.is_online)
        state.is_online = bool(flag)
        return was_online

    was_online = run_atomic(_op)

    flushed: list[str] = []
    flush_error = None
    if flag and not was_online:
        try:
            flushed = flush_offline_queue()
        except SyncError as exc:
            flush_error = str(exc)
            current_app.logger.warning("Offline queue flush failed: %s", exc.details)
            notification_service.notify("error", flush_error, commit=True)

    return {
        "is_online": bool(flag),
        "flushed_transaction_ids": flushed,
        "flush_error": flush_error,
    }


def sync_status() -> dict:
    state = db.session.get(SyncState, SYNC_STATE_ID)
    return {
        "is_online": is_online(),
        "last_synced_at": to_utc_z(state.last_synced_at) if state and state.last_synced_at else None,
        "queued": db.session.query(OfflineQueueEntry).count(),
    }
