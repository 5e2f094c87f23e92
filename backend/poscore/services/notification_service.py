# Overview: Notification sink; stores user-facing ledger messages and mirrors them to the app logger.

from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import Notification
from ..models.communications import NOTIFICATION_KINDS


_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "error": logging.WARNING,
}


def notify(kind: str, message: str, *, commit: bool = False) -> Notification:
    """
    Record a notification.

    Inside a ledger operation the row joins the caller's unit of work
    (commit=False). Routes reporting a failed operation pass commit=True,
    since the operation's own transaction was rolled back.
    """
    if kind not in NOTIFICATION_KINDS:
        raise ValueError(f"unknown notification kind: {kind}")

    note = Notification(kind=kind, message=message)
    db.session.add(note)
    current_app.logger.log(_LOG_LEVELS[kind], "[%s] %s", kind, message)

    if commit:
        db.session.commit()
    return note


def list_notifications(limit: int = 50, kind: str | None = None) -> list[Notification]:
    query = db.session.query(Notification)
    if kind:
        query = query.filter(Notification.kind == kind)
    return query.order_by(Notification.id.desc()).limit(limit).all()
