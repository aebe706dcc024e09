from __future__ import annotations

from typing import Any, Dict, Optional

from sticker_market.errors import DuplicateUser, InvalidCredentials, NotFound, ValidationError
from sticker_market.models import Identity
from sticker_market.util.time import utcnow_iso

from .security import hash_password, verify_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_login_id(login_id: str) -> str:
    return (login_id or "").strip()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """Client-facing user summary: id, name, userId, coins."""
    d = dict(row)
    return {
        "id": int(d["id"]),
        "name": d["name"],
        "userId": d["user_id"],
        "coins": int(d["coins"]),
    }


def get_user_by_login_id(conn: Any, login_id: str) -> Optional[Any]:
    u = normalize_login_id(login_id)
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (u,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE id=?",
        (int(user_id),),
    ).fetchone()


def create_user(
    conn: Any,
    *,
    name: str,
    login_id: str,
    password: str,
    coins: int,
    password_rounds: Optional[int] = None,
) -> Dict[str, Any]:
    """Register a new account with the given starting balance."""
    display = (name or "").strip()
    u = normalize_login_id(login_id)
    if not display or not u or not password:
        raise ValidationError("missing_fields")

    existing = conn.execute("SELECT 1 FROM users WHERE user_id=?", (u,)).fetchone()
    if existing is not None:
        _debug(f"signup rejected, login id taken: {u}")
        raise DuplicateUser()

    now = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO users (name, user_id, password_hash, coins, created_at, updated_at)
        VALUES (?,?,?,?,?,?)
        RETURNING *
        """,
        (display, u, hash_password(password, rounds=password_rounds), int(coins), now, now),
    ).fetchone()
    _debug(f"created user id={row['id']} userId={u}")
    return public_user(row)


def verify_user_credentials(conn: Any, login_id: str, password: str) -> Any:
    """Return the user row for a correct login id / password pair.

    Unknown login ids raise NotFound and wrong passwords InvalidCredentials;
    the API answers 401 for both.
    """
    if not normalize_login_id(login_id) or not password:
        raise ValidationError("missing_fields")

    row = get_user_by_login_id(conn, login_id)
    if row is None:
        raise NotFound("user_not_found")
    if not verify_password(password, str(row["password_hash"])):
        _debug(f"login rejected for userId={row['user_id']}: password mismatch")
        raise InvalidCredentials("password_mismatch")
    return row


def change_password(
    conn: Any,
    identity: Identity,
    *,
    current_password: str,
    new_password: str,
    password_rounds: Optional[int] = None,
) -> None:
    """Replace the stored hash after checking the current password.

    Tokens issued before the change keep working until they expire.
    """
    if not current_password or not new_password:
        raise ValidationError("missing_fields")

    row = conn.execute(
        "SELECT password_hash FROM users WHERE id=?",
        (int(identity.id),),
    ).fetchone()
    if row is None:
        raise NotFound("user_not_found")
    if not verify_password(current_password, str(row["password_hash"])):
        raise InvalidCredentials("current_password_mismatch")

    conn.execute(
        "UPDATE users SET password_hash=?, updated_at=? WHERE id=?",
        (hash_password(new_password, rounds=password_rounds), utcnow_iso(), int(identity.id)),
    )
    _debug(f"password changed for userId={identity.user_id}")
