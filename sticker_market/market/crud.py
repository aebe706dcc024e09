from __future__ import annotations

from typing import Any, Dict, List, Optional

from sticker_market.auth.crud import get_user_by_id, public_user
from sticker_market.db import Database
from sticker_market.errors import NotFound, ValidationError
from sticker_market.models import Identity
from sticker_market.schema import MAX_DB_INT
from sticker_market.util.time import utcnow_iso

from .storage import delete_sticker_image, public_image_url, save_sticker_image


def _debug(msg: str) -> None:
    print(f"[market] {msg}")


# Sticker rows joined with the uploader's login id.
_STICKER_SELECT = """
    SELECT s.id, s.name, s.image, s.price, s.uploader_id, s.created_at, u.user_id AS uploader_login
    FROM stickers s
    JOIN users u ON u.id = s.uploader_id
"""


def public_sticker(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {
        "id": int(d["id"]),
        "name": d["name"],
        "image": d["image"],
        "imageUrl": public_image_url(str(d["image"])),
        "price": int(d["price"]),
        "userId": d.get("uploader_login"),
        "uploaderId": int(d["uploader_id"]),
        "createdAt": d.get("created_at"),
    }


def parse_price(raw: Any) -> int:
    """Accept an int or a numeric string; reject blanks, fractions, negatives and values past 64 bits."""
    if raw is None or isinstance(raw, bool):
        raise ValidationError("missing_fields")
    if isinstance(raw, int):
        price = raw
    else:
        s = str(raw).strip()
        if not s:
            raise ValidationError("missing_fields")
        try:
            price = int(s)
        except ValueError:
            raise ValidationError("invalid_price")
    if price < 0 or price > MAX_DB_INT:
        raise ValidationError("invalid_price")
    return price


def upload_sticker(
    db: Database,
    identity: Identity,
    *,
    name: Optional[str],
    price: Any,
    image: Optional[bytes],
    image_filename: Optional[str],
    upload_dir: str,
) -> int:
    """Store the image on disk and insert a sticker owned by `identity`. Returns the sticker id.

    Runs its own transaction: if the insert or the commit fails, the stored
    image is removed again.
    """
    sticker_name = (name or "").strip()
    if not sticker_name or not image or price is None:
        raise ValidationError("missing_fields")
    p = parse_price(price)

    filename = save_sticker_image(upload_dir, image, image_filename)
    try:
        with db.connect() as conn:
            row = conn.execute(
                """
                INSERT INTO stickers (name, image, uploader_id, price, created_at)
                VALUES (?,?,?,?,?)
                RETURNING id
                """,
                (sticker_name, filename, int(identity.id), p, utcnow_iso()),
            ).fetchone()
    except Exception:
        delete_sticker_image(upload_dir, filename)
        raise

    sticker_id = int(row["id"])
    _debug(f"uploaded sticker id={sticker_id} name={sticker_name!r} price={p} by userId={identity.user_id}")
    return sticker_id


def list_stickers(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute(_STICKER_SELECT + " ORDER BY s.id").fetchall()
    return [public_sticker(r) for r in rows]


def list_user_stickers(conn: Any, identity: Identity) -> List[Dict[str, Any]]:
    """Stickers the user has bought (one entry per ownership record)."""
    rows = conn.execute(
        _STICKER_SELECT
        + """
        JOIN user_stickers us ON us.sticker_id = s.id
        WHERE us.user_id=?
        ORDER BY us.id
        """,
        (int(identity.id),),
    ).fetchall()
    return [public_sticker(r) for r in rows]


def list_uploaded_stickers(conn: Any, identity: Identity) -> List[Dict[str, Any]]:
    rows = conn.execute(
        _STICKER_SELECT + " WHERE s.uploader_id=? ORDER BY s.id",
        (int(identity.id),),
    ).fetchall()
    return [public_sticker(r) for r in rows]


def get_user_info(conn: Any, identity: Identity) -> Dict[str, Any]:
    row = get_user_by_id(conn, identity.id)
    if row is None:
        raise NotFound("user_not_found")
    return public_user(row)
