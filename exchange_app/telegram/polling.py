"""Run the bot with long polling (local development without a public domain)."""

from __future__ import annotations

from exchange_app.core.config import settings
from exchange_app.core.logging import configure_logging
from exchange_app.telegram.bot import BotApplication
from exchange_app.telegram.runtime import telegram_bot


def run() -> None:
    """Drop any configured webhook and poll for updates until interrupted."""
    configure_logging(
        settings.log_level,
        secrets=(settings.telegram_bot_token.get_secret_value(),),
    )
    application: BotApplication = telegram_bot.application
    # run_polling removes an existing webhook itself before polling starts
    application.run_polling(
        allowed_updates=list(telegram_bot.allowed_updates),
        drop_pending_updates=True,
    )


if __name__ == "__main__":
    run()
