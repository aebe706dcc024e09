"""Create a user directly in the DB (bypasses the /signup endpoint).

Usage:
  python scripts/create_user.py --name Ann --user-id ann1 --password '...' [--coins 5000]

NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sticker_market.auth.crud import create_user
from sticker_market.config import load_config
from sticker_market.db import connect, init_db
from sticker_market.errors import MarketError


def main() -> None:
    cfg = load_config()

    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True)
    ap.add_argument("--user-id", required=True, help="login id")
    ap.add_argument("--password", required=True)
    ap.add_argument("--coins", type=int, default=cfg.SIGNUP_STARTING_COINS)
    args = ap.parse_args()

    init_db(cfg.DB_DSN)

    try:
        with connect(cfg.DB_DSN) as conn:
            u = create_user(
                conn,
                name=args.name,
                login_id=args.user_id,
                password=args.password,
                coins=args.coins,
                password_rounds=cfg.AUTH_PASSWORD_ROUNDS,
            )
    except MarketError as e:
        raise SystemExit(f"Could not create user: {e.message}")

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
