from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sticker_market.config import Config
from sticker_market.db import Database
from sticker_market.models import Identity

from .security import verify_token


_bearer = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_database(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=500, detail="server_store_missing")
    return db


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> Identity:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    No header -> 401, bad or expired token -> 403. The token is trusted as is;
    routes that need the stored row look it up themselves.
    """
    token = credentials.credentials if credentials is not None else None
    return verify_token(token, secret=cfg.AUTH_JWT_SECRET)
