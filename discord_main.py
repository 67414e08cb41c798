from application.services import ShopCatalog
from application.wager import WagerEngine
from config import load_settings
from infrastructure.db.repository_factory import build_account_repository
from infrastructure.logging_setup import configure_logging
from interfaces.discord.handlers import create_discord_bot


def main() -> None:
    settings = load_settings()
    configure_logging(settings)

    if not settings.discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    account_repo = build_account_repository(settings)
    engine = WagerEngine.from_settings(account_repo, settings)
    catalog = ShopCatalog.from_settings(settings)

    bot = create_discord_bot(settings, account_repo, engine, catalog)
    # Logging is already configured; keep discord.py from adding its own handler.
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
