from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as carried by a verified session token."""

    id: int
    name: str
    user_id: str
