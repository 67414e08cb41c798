from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

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
from domain.errors import CoinflipError
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


logger = logging.getLogger(__name__)


def _account_id(user: discord.abc.User) -> str:
    return f"discord:{user.id}"


async def _run_blocking(func, *args, **kwargs):
    # Repository calls block on the database; keep them off the event loop.
    return await asyncio.to_thread(func, *args, **kwargs)


def create_discord_bot(
    settings: Settings,
    account_repo: AccountRepository,
    engine: WagerEngine,
    catalog: ShopCatalog,
) -> commands.Bot:
    """
    Configure and return a Discord bot with behaviour analogous to
    the Telegram interface: !start, !help, !flip, !balance and the shop.
    """

    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.command(name="start")
    async def start_cmd(ctx: commands.Context):
        account = await _run_blocking(
            open_account,
            _account_id(ctx.author),
            ctx.author.display_name or ctx.author.name,
            account_repo,
            settings.starting_balance,
        )
        await ctx.send(
            f"Welcome to coinflip, {account.username}!\n"
            f"You have {account.balance} coins.\n"
            f"Your account id is {account.id}.\n"
            "Type !help to see available commands."
        )

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(
            "!flip <heads|tails> <stake>  - flip a coin for <stake> coins\n"
            "!balance                     - show your coins\n"
            "!shop                        - list shop prices\n"
            "!buy <resource> <quantity>   - buy resources with coins\n"
            "!resources                   - show the resources you own\n"
            "!grant <account> <amount>    - admins: add or remove coins\n"
        )

    @bot.command(name="flip")
    async def flip_cmd(ctx: commands.Context, side: str = "", stake: str = ""):
        try:
            request = parse_wager_request(_account_id(ctx.author), side, stake)
            result = await _run_blocking(engine.resolve_request, request)
        except CoinflipError as exc:
            await ctx.send(describe_error(exc))
            return
        await ctx.send(f"{ctx.author.mention} {describe_wager(result)}")

    @bot.command(name="balance")
    async def balance_cmd(ctx: commands.Context):
        try:
            balance = await _run_blocking(get_balance, _account_id(ctx.author), account_repo)
        except CoinflipError as exc:
            await ctx.send(describe_error(exc))
            return
        await ctx.send(f"{ctx.author.mention} Balance: {balance}")

    @bot.command(name="shop")
    async def shop_cmd(ctx: commands.Context):
        await ctx.send(describe_shop(catalog.items()))

    @bot.command(name="buy")
    async def buy_cmd(ctx: commands.Context, resource: str = "", quantity: str = ""):
        try:
            result = await _run_blocking(
                purchase_resource,
                _account_id(ctx.author),
                resource,
                quantity,
                account_repo,
                catalog,
                attempts=settings.max_settle_attempts,
            )
        except CoinflipError as exc:
            await ctx.send(describe_error(exc))
            return
        await ctx.send(describe_purchase(result))

    @bot.command(name="resources")
    async def resources_cmd(ctx: commands.Context):
        try:
            resources = await _run_blocking(
                get_resources, _account_id(ctx.author), account_repo, catalog
            )
        except CoinflipError as exc:
            await ctx.send(describe_error(exc))
            return
        await ctx.send(describe_resources(resources))

    @bot.command(name="grant")
    async def grant_cmd(ctx: commands.Context, account_id: str = "", amount: str = ""):
        admin_id = _account_id(ctx.author)
        if admin_id not in settings.admin_ids:
            await ctx.send(NOT_ADMIN_REPLY)
            return
        if not account_id or not amount:
            await ctx.send("Usage: !grant <account> <amount>")
            return

        try:
            balance = await _run_blocking(
                grant_coins,
                account_id,
                parse_amount(amount),
                account_repo,
                attempts=settings.max_settle_attempts,
            )
        except CoinflipError as exc:
            await ctx.send(describe_error(exc))
            return
        logger.info("Admin %s granted %s to %s", admin_id, amount, account_id)
        await ctx.send(describe_grant(account_id, balance))

    return bot
