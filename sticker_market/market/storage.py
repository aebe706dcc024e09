from __future__ import annotations

import os
import secrets
import tempfile
from pathlib import Path

from sticker_market.errors import ValidationError
from sticker_market.util.hashing import sha256_hex_bytes
from sticker_market.util.time import epoch_millis


STICKER_SUBDIR = "stickers"
PUBLIC_PREFIX = "/uploads"

# Raster image types only; StaticFiles serves uploads with a content type from the extension.
ALLOWED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")


def _debug(msg: str) -> None:
    print(f"[storage] {msg}")


def sticker_dir(upload_dir: str) -> Path:
    p = Path(upload_dir) / STICKER_SUBDIR
    p.mkdir(parents=True, exist_ok=True)
    return p


def image_extension(original_filename: str | None) -> str:
    ext = os.path.splitext(original_filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError("invalid_image_type")
    return ext


def sticker_filename(data: bytes, original_filename: str | None) -> str:
    """<epoch ms>-<content hash prefix>-<random><ext>, e.g. 1718000000000-3f2a9c01d4e5-9b1c04aa.png"""
    ext = image_extension(original_filename)
    return f"{epoch_millis()}-{sha256_hex_bytes(data)[:12]}-{secrets.token_hex(4)}{ext}"


def save_sticker_image(upload_dir: str, data: bytes, original_filename: str | None) -> str:
    """Write the image bytes and return the stored filename."""
    name = sticker_filename(data, original_filename)
    folder = sticker_dir(upload_dir)
    target = folder / name
    tmp = tempfile.NamedTemporaryFile(dir=folder, prefix=".upload-", suffix=".part", delete=False)
    try:
        with tmp:
            tmp.write(data)
        os.replace(tmp.name, target)
    except OSError:
        Path(tmp.name).unlink(missing_ok=True)
        raise
    _debug(f"stored {len(data)} bytes at {target}")
    return name


def delete_sticker_image(upload_dir: str, filename: str) -> None:
    (Path(upload_dir) / STICKER_SUBDIR / filename).unlink(missing_ok=True)


def public_image_url(filename: str) -> str:
    return f"{PUBLIC_PREFIX}/{STICKER_SUBDIR}/{filename}"
