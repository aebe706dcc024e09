"""Sticker purchase: balance check, debit and ownership grant as one transaction.

The caller passes a connection from `connect()`, whose block commits on success
and rolls back on any exception, so every early exit below leaves the balance
and the ownership table untouched.

Lock order: `begin_write` takes the write lock before the first read, so two
purchases by the same user are serialised and the second one sees the debited
balance. On Postgres the user row is read with FOR UPDATE instead.
"""

from __future__ import annotations

from typing import Any, Optional

from sticker_market.db import begin_write, for_update_clause
from sticker_market.errors import BusinessRuleViolation, InsufficientFunds, NotFound, ValidationError
from sticker_market.models import Identity
from sticker_market.schema import MAX_DB_INT
from sticker_market.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[purchase] {msg}")


def purchase_sticker(conn: Any, identity: Identity, sticker_id: Optional[int]) -> int:
    """Buy `sticker_id` for `identity`. Returns the buyer's remaining coins."""
    if sticker_id is None or isinstance(sticker_id, bool):
        raise ValidationError("missing_sticker_id")
    try:
        sid = int(sticker_id)
    except (TypeError, ValueError):
        raise ValidationError("invalid_sticker_id")
    if sid <= 0:
        raise ValidationError("missing_sticker_id")
    if sid > MAX_DB_INT:
        raise ValidationError("invalid_sticker_id")

    begin_write(conn)

    sticker = conn.execute(
        "SELECT id, price FROM stickers WHERE id=?",
        (sid,),
    ).fetchone()
    if sticker is None:
        raise NotFound("sticker_not_found")

    price = int(sticker["price"])
    if price <= 0:
        # Free stickers are never sold through this path.
        raise BusinessRuleViolation("free_sticker_not_purchasable")

    user = conn.execute(
        "SELECT id, coins FROM users WHERE id=?" + for_update_clause(conn),
        (int(identity.id),),
    ).fetchone()
    if user is None:
        raise NotFound("user_not_found")

    owned = conn.execute(
        "SELECT 1 FROM user_stickers WHERE user_id=? AND sticker_id=?",
        (int(identity.id), sid),
    ).fetchone()
    if owned is not None:
        raise BusinessRuleViolation("sticker_already_owned")

    coins = int(user["coins"])
    if coins < price:
        raise InsufficientFunds("insufficient_coins")

    debited = conn.execute(
        "UPDATE users SET coins = coins - ?, updated_at=? WHERE id=? AND coins >= ?",
        (price, utcnow_iso(), int(identity.id), price),
    )
    if debited.rowcount != 1:
        raise InsufficientFunds("insufficient_coins")

    conn.execute(
        "INSERT INTO user_stickers (user_id, sticker_id, purchased_at) VALUES (?,?,?)",
        (int(identity.id), sid, utcnow_iso()),
    )

    remaining = coins - price
    _debug(f"userId={identity.user_id} bought sticker id={sid} for {price}, {remaining} coins left")
    return remaining
