"""
Backend of the exchange desk Telegram Mini App.

It exposes subpackages for API routers, core utilities (including initData
verification), domain models, services, the JSON store and the Telegram bot.
"""
