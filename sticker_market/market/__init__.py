"""Marketplace: sticker upload and listing, purchases, user info."""

from .crud import get_user_info, list_stickers, list_uploaded_stickers, list_user_stickers, upload_sticker
from .purchase import purchase_sticker

__all__ = [
    "get_user_info",
    "list_stickers",
    "list_uploaded_stickers",
    "list_user_stickers",
    "purchase_sticker",
    "upload_sticker",
]
