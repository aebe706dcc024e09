import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load a local .env file if present.
load_dotenv()


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Provide secrets via environment variables or a .env file.
    Tests construct this directly with overrides (e.g. a temp DB path).
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set STICKER_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: STICKER_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("STICKER_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("STICKER_DB_PATH", "./sticker_market.sqlite")
    )

    # Root for uploaded files. Sticker images land in <UPLOAD_DIR>/stickers and
    # are served back under /uploads/stickers/<filename>.
    UPLOAD_DIR: str = os.environ.get("UPLOAD_DIR", "./uploads")

    # Balance given to every new account.
    SIGNUP_STARTING_COINS: int = int(os.environ.get("SIGNUP_STARTING_COINS", "5000"))

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = (
        os.environ.get("AUTH_JWT_SECRET")
        or os.environ.get("SECRET_KEY")
        or "dev_change_me"
    )
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "60"))  # 1 hour

    # pbkdf2_sha256 work factor. Lower it in tests only.
    AUTH_PASSWORD_ROUNDS: int = int(os.environ.get("AUTH_PASSWORD_ROUNDS", "29000"))

    # -----------------
    # CORS
    # -----------------
    # Comma separated. "*" allows any origin (credentials are then disabled).
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "*")


def load_config() -> Config:
    return Config()
