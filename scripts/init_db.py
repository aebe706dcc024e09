import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sticker_market.config import load_config
from sticker_market.db import init_db
from sticker_market.market.storage import sticker_dir


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_DSN)
    sticker_dir(cfg.UPLOAD_DIR)

    print(f"DB initialized: {cfg.DB_DSN}")


if __name__ == "__main__":
    main()
