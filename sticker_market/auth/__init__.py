"""Authentication / authorization helpers.

Auth is kept lightweight:

- users table (login id + pbkdf2 password hash + coin balance)
- stateless JWT access tokens, 1 hour by default, sent as
  `Authorization: Bearer <token>`

Tokens are not stored server side, so there is no logout or revocation:
a token stays valid until it expires, even across a password change.
"""

from .crud import change_password, create_user, verify_user_credentials
from .deps import get_identity
from .security import create_access_token, verify_token

__all__ = [
    "change_password",
    "create_access_token",
    "create_user",
    "get_identity",
    "verify_token",
    "verify_user_credentials",
]
