"""Telegram bot: handlers, message formatting and keyboards."""
