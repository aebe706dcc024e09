from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext
from passlib.hash import pbkdf2_sha256

from sticker_market.errors import InvalidToken, Unauthenticated
from sticker_market.models import Identity


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def hash_password(password: str, *, rounds: Optional[int] = None) -> str:
    if not password:
        raise ValueError("password_blank")
    if rounds is None:
        return _pwd.hash(password)
    return pbkdf2_sha256.using(rounds=max(1, int(rounds))).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        # Unrecognized / malformed hash
        return False


def create_access_token(
    *,
    secret: str,
    user_id: int,
    name: str,
    login_id: str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    issued = now or datetime.now(timezone.utc)
    exp = issued + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "name": name,
        "userId": login_id,
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["exp", "sub"]})


def verify_token(token: Optional[str], *, secret: str) -> Identity:
    """Turn a bearer token into an Identity.

    Raises Unauthenticated when no token is given and InvalidToken when the
    signature, expiry or claims do not check out.
    """
    if not token:
        raise Unauthenticated("missing_token")

    try:
        payload = decode_access_token(token=token, secret=secret)
    except jwt.ExpiredSignatureError:
        _debug("rejected expired token")
        raise InvalidToken("token_expired")
    except jwt.InvalidTokenError as e:
        _debug(f"rejected token: {e}")
        raise InvalidToken("token_invalid")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidToken("token_sub_not_int")

    login_id = payload.get("userId")
    if not login_id:
        raise InvalidToken("token_missing_user")

    return Identity(id=user_id, name=str(payload.get("name") or ""), user_id=str(login_id))
