"""Telegram bot: chat menu and alert delivery"""
from threat_monitor.bot.menu import MenuHandler, PREDEFINED_THREATS
from threat_monitor.bot.state import ChatState, ChatStateStore
from threat_monitor.bot.telegram import TelegramBot

__all__ = [
    "MenuHandler",
    "PREDEFINED_THREATS",
    "ChatState",
    "ChatStateStore",
    "TelegramBot",
]
