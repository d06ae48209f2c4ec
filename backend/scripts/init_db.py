"""Initialize database and tables for local development."""
from __future__ import annotations

import sys
from pathlib import Path
import os

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
os.chdir(ROOT_DIR)

from sqlalchemy import create_engine  # noqa: E402

from threat_monitor.config import get_settings  # noqa: E402
from threat_monitor.database import init_db  # noqa: E402


def create_tables(database_url: str) -> None:
    if database_url.startswith("sqlite:///"):
        Path(database_url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url)
    try:
        init_db(bind=engine)
    finally:
        engine.dispose()


def main() -> None:
    settings = get_settings()
    create_tables(settings.database_url)
    print(f"Tables created for {settings.database_url}")


if __name__ == "__main__":
    main()
