from application.services import ShopCatalog
from application.wager import WagerEngine
from config import load_settings
from infrastructure.db.repository_factory import build_account_repository
from infrastructure.logging_setup import configure_logging
from interfaces.telegram.handlers import create_telegram_bot


def main() -> None:
    settings = load_settings()
    configure_logging(settings)

    if not settings.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    account_repo = build_account_repository(settings)
    engine = WagerEngine.from_settings(account_repo, settings)
    catalog = ShopCatalog.from_settings(settings)

    bot = create_telegram_bot(settings, account_repo, engine, catalog)
    bot.infinity_polling()


if __name__ == "__main__":
    main()
