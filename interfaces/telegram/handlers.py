from __future__ import annotations

import logging

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.services import (
    ShopCatalog,
    get_balance,
    get_resources,
    grant_coins,
    open_account,
    parse_amount,
    purchase_resource,
)
from application.wager import WagerEngine, parse_wager_request
from config import Settings
from domain.errors import CoinflipError, InsufficientFunds
from domain.models import CoinSide
from domain.repositories import AccountRepository
from interfaces.replies import (
    NOT_ADMIN_REPLY,
    describe_error,
    describe_grant,
    describe_purchase,
    describe_resources,
    describe_shop,
    describe_wager,
)
from interfaces.telegram.callback_data import (
    FLIP_PREFIX,
    encode_flip_choice,
    parse_flip_choice,
)


logger = logging.getLogger(__name__)


def _account_id(telegram_user) -> str:
    return f"telegram:{telegram_user.id}"


def _username(telegram_user) -> str:
    name = " ".join(
        part for part in (telegram_user.first_name, telegram_user.last_name) if part
    )
    return name or telegram_user.username or str(telegram_user.id)


def create_telegram_bot(
    settings: Settings,
    account_repo: AccountRepository,
    engine: WagerEngine,
    catalog: ShopCatalog,
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application services.
    """

    bot = telebot.TeleBot(settings.telegram_token)

    def flip_for(chat_id, telegram_user, predicted, stake) -> None:
        try:
            request = parse_wager_request(_account_id(telegram_user), predicted, stake)
            result = engine.resolve_request(request)
        except CoinflipError as exc:
            bot.send_message(chat_id, describe_error(exc))
            return
        bot.send_message(chat_id, describe_wager(result))

    @bot.message_handler(commands=["start", "hello"])
    def handle_start(message):
        account = open_account(
            _account_id(message.from_user),
            _username(message.from_user),
            account_repo,
            settings.starting_balance,
        )
        bot.send_message(
            message.chat.id,
            f"Welcome to coinflip, {account.username}!\n"
            f"You have {account.balance} coins.\n"
            f"Your account id is {account.id}.\n"
            "Type /help to see available commands.",
        )

    @bot.message_handler(commands=["help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "/flip <stake>               - flip a coin, then pick a side\n"
            "/flip <heads|tails> <stake> - flip a coin on the given side\n"
            "/balance                    - show your coins\n"
            "/shop                       - list shop prices\n"
            "/buy <resource> <quantity>  - buy resources with coins\n"
            "/resources                  - show the resources you own\n"
            "/grant <account> <amount>   - admins: add or remove coins\n",
        )

    @bot.message_handler(commands=["balance"])
    def handle_balance(message):
        try:
            balance = get_balance(_account_id(message.from_user), account_repo)
        except CoinflipError as exc:
            bot.send_message(message.chat.id, describe_error(exc))
            return
        bot.send_message(message.chat.id, f"Balance: {balance}")

    @bot.message_handler(commands=["flip"])
    def handle_flip(message):
        parts = message.text.split()
        if len(parts) < 2:
            bot.send_message(message.chat.id, "Usage: /flip <stake> or /flip <heads|tails> <stake>")
            return

        if len(parts) >= 3:
            flip_for(message.chat.id, message.from_user, parts[1], parts[2])
            return

        # Only the stake was given: check it against the balance now, so the
        # buttons only ever carry a stake the account can cover.
        account_id = _account_id(message.from_user)
        try:
            request = parse_wager_request(account_id, CoinSide.HEADS, parts[1])
            balance = get_balance(account_id, account_repo)
            if request.stake > balance:
                raise InsufficientFunds(account_id, request.stake, balance)
        except CoinflipError as exc:
            bot.send_message(message.chat.id, describe_error(exc))
            return

        markup = InlineKeyboardMarkup(row_width=2)
        markup.add(
            InlineKeyboardButton(
                "Heads", callback_data=encode_flip_choice(CoinSide.HEADS, request.stake)
            ),
            InlineKeyboardButton(
                "Tails", callback_data=encode_flip_choice(CoinSide.TAILS, request.stake)
            ),
        )
        bot.send_message(
            message.chat.id,
            f"Flipping for {request.stake} coins. Pick a side:",
            reply_markup=markup,
        )

    @bot.callback_query_handler(func=lambda call: call.data.startswith(f"{FLIP_PREFIX}:"))
    def handle_flip_choice(call):
        try:
            side, stake = parse_flip_choice(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        try:
            bot.answer_callback_query(call.id)
            flip_for(call.message.chat.id, call.from_user, side, stake)
        finally:
            bot.delete_message(call.message.chat.id, call.message.id)

    @bot.message_handler(commands=["shop"])
    def handle_shop(message):
        bot.send_message(message.chat.id, describe_shop(catalog.items()))

    @bot.message_handler(commands=["buy"])
    def handle_buy(message):
        parts = message.text.split()
        if len(parts) < 3:
            bot.send_message(message.chat.id, "Usage: /buy <resource> <quantity>")
            return

        try:
            result = purchase_resource(
                _account_id(message.from_user),
                parts[1],
                parts[2],
                account_repo,
                catalog,
                attempts=settings.max_settle_attempts,
            )
        except CoinflipError as exc:
            bot.send_message(message.chat.id, describe_error(exc))
            return
        bot.send_message(message.chat.id, describe_purchase(result))

    @bot.message_handler(commands=["resources"])
    def handle_resources(message):
        try:
            resources = get_resources(_account_id(message.from_user), account_repo, catalog)
        except CoinflipError as exc:
            bot.send_message(message.chat.id, describe_error(exc))
            return
        bot.send_message(message.chat.id, describe_resources(resources))

    @bot.message_handler(commands=["grant"])
    def handle_grant(message):
        admin_id = _account_id(message.from_user)
        if admin_id not in settings.admin_ids:
            bot.send_message(message.chat.id, NOT_ADMIN_REPLY)
            return

        parts = message.text.split()
        if len(parts) < 3:
            bot.send_message(message.chat.id, "Usage: /grant <account> <amount>")
            return

        try:
            balance = grant_coins(
                parts[1],
                parse_amount(parts[2]),
                account_repo,
                attempts=settings.max_settle_attempts,
            )
        except CoinflipError as exc:
            bot.send_message(message.chat.id, describe_error(exc))
            return
        logger.info("Admin %s granted %s to %s", admin_id, parts[2], parts[1])
        bot.send_message(message.chat.id, describe_grant(parts[1], balance))

    logger.info("Telegram bot configured")
    return bot
