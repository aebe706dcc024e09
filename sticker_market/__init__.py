"""Sticker marketplace backend.

Users sign up with a starting coin balance, upload stickers (name, price,
image) and buy other users' stickers with their coins.

Core concepts:
- A purchase is one transaction: balance check, debit, ownership record.
- Sessions are stateless JWT bearer tokens.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
