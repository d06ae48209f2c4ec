"""Interactive first login for the channel-monitoring user session.

Run once before starting the server so the MTProto session file exists and
startup does not block on the login code prompt.
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
import os

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
os.chdir(ROOT_DIR)

from telethon import TelegramClient  # noqa: E402
from telethon.sessions import StringSession  # noqa: E402

from threat_monitor.config import get_settings  # noqa: E402


async def login() -> None:
    settings = get_settings()
    session_file = Path(settings.telegram_session_file)
    existing = session_file.read_text(encoding="utf-8").strip() if session_file.exists() else ""

    client = TelegramClient(StringSession(existing), settings.telegram_api_id, settings.telegram_api_hash)
    if settings.telegram_phone:
        await client.start(phone=settings.telegram_phone)
    else:
        await client.start()
    me = await client.get_me()

    session_file.parent.mkdir(parents=True, exist_ok=True)
    session_file.write_text(client.session.save(), encoding="utf-8")
    print(f"Logged in as {me.username or me.id}; session saved to {session_file}")
    await client.disconnect()


def main() -> None:
    asyncio.run(login())


if __name__ == "__main__":
    main()
