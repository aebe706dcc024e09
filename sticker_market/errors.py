"""Error taxonomy shared by the auth and market components.

Each error carries the HTTP status it maps to and a short machine-readable
message. The API renders all of them as `{"isSuccess": false, "message": ...}`.
"""

from __future__ import annotations


class MarketError(Exception):
    status_code: int = 500
    default_message: str = "server_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MarketError):
    status_code = 400
    default_message = "missing_fields"


class Unauthenticated(MarketError):
    status_code = 401
    default_message = "missing_token"


class InvalidToken(MarketError):
    status_code = 403
    default_message = "token_invalid"


class InvalidCredentials(MarketError):
    status_code = 401
    default_message = "invalid_credentials"


class NotFound(MarketError):
    status_code = 404
    default_message = "not_found"


class InsufficientFunds(MarketError):
    status_code = 400
    default_message = "insufficient_coins"


class BusinessRuleViolation(MarketError):
    status_code = 400
    default_message = "not_allowed"


# Signup conflicts surface as a generic 500, same as any other failed insert.
class DuplicateUser(MarketError):
    status_code = 500
    default_message = "user_create_failed"


class StoreError(MarketError):
    status_code = 500
    default_message = "server_error"
