import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

from application.services import ShopCatalog
from application.wager import WagerEngine
from config import Settings
from domain.models import Account, CoinSide
from in_memory import InMemoryAccountRepository, scripted_draws
from interfaces.discord.handlers import create_discord_bot
from interfaces.replies import ERROR_REPLIES, NOT_ADMIN_REPLY
from interfaces.telegram.handlers import create_telegram_bot


def _telegram_user(user_id):
    return SimpleNamespace(id=user_id, first_name="Player", last_name=None, username=None)


def _telegram_message(text, user_id=1):
    return SimpleNamespace(text=text, chat=SimpleNamespace(id=500), from_user=_telegram_user(user_id))


def _registered(handlers, name):
    for handler in handlers:
        if handler["function"].__name__ == name:
            return handler["function"]
    raise LookupError(name)


class TelegramHandlerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = InMemoryAccountRepository()
        self.repo.add_account(Account(id="telegram:1", username="Admin", balance=100))
        self.repo.add_account(Account(id="telegram:2", username="Player", balance=100))
        settings = Settings(telegram_token="123456:TEST", admin_ids=frozenset({"telegram:1"}))
        engine = WagerEngine(self.repo, draw=scripted_draws(CoinSide.HEADS))

        self.bot = create_telegram_bot(settings, self.repo, engine, ShopCatalog(prices={"ram": 5}))
        self.bot.send_message = Mock()
        self.bot.answer_callback_query = Mock()
        self.bot.delete_message = Mock()

    def handler(self, name):
        return _registered(self.bot.message_handlers, name)

    def last_reply(self):
        return self.bot.send_message.call_args

    def test_stake_only_flip_offers_both_sides(self):
        self.handler("handle_flip")(_telegram_message("/flip 40"))

        markup = self.last_reply().kwargs["reply_markup"]
        data = [button.callback_data for row in markup.keyboard for button in row]
        self.assertEqual(data, ["flip:heads:40", "flip:tails:40"])
        self.assertEqual(self.repo.writes, 0)

    def test_picking_a_side_settles_the_wager(self):
        handle_choice = _registered(self.bot.callback_query_handlers, "handle_flip_choice")
        call = SimpleNamespace(
            id="cb-1",
            data="flip:heads:40",
            from_user=_telegram_user(2),
            message=SimpleNamespace(id=77, chat=SimpleNamespace(id=500)),
        )

        handle_choice(call)

        self.assertEqual(self.repo.get_balance("telegram:2"), 140)
        self.assertIn("You won 40 coins", self.last_reply().args[1])
        self.bot.answer_callback_query.assert_called_once_with("cb-1")
        self.bot.delete_message.assert_called_once_with(500, 77)

    def test_stake_only_flip_checks_balance_before_offering_sides(self):
        self.handler("handle_flip")(_telegram_message("/flip 150"))

        self.assertEqual(self.last_reply().args, (500, ERROR_REPLIES["insufficient_funds"]))
        self.assertNotIn("reply_markup", self.last_reply().kwargs)

    def test_stake_only_flip_rejects_oversized_stake(self):
        self.handler("handle_flip")(_telegram_message("/flip " + "9" * 60))

        self.assertEqual(self.last_reply().args, (500, ERROR_REPLIES["invalid_stake"]))
        self.assertNotIn("reply_markup", self.last_reply().kwargs)

    def test_flip_with_side_and_stake(self):
        self.handler("handle_flip")(_telegram_message("/flip tails 30", user_id=2))

        self.assertEqual(self.repo.get_balance("telegram:2"), 70)
        self.assertIn("You lost 30 coins", self.last_reply().args[1])

    def test_grant_by_admin(self):
        self.handler("handle_grant")(_telegram_message("/grant telegram:2 -30"))

        self.assertEqual(self.repo.get_balance("telegram:2"), 70)
        self.assertIn("70", self.last_reply().args[1])

    def test_grant_refused_for_non_admin(self):
        self.handler("handle_grant")(_telegram_message("/grant telegram:2 500", user_id=2))

        self.assertEqual(self.last_reply().args, (500, NOT_ADMIN_REPLY))
        self.assertEqual(self.repo.get_balance("telegram:2"), 100)
        self.assertEqual(self.repo.writes, 0)

    def test_grant_cannot_overdraw(self):
        self.handler("handle_grant")(_telegram_message("/grant telegram:2 -500"))

        self.assertEqual(self.last_reply().args, (500, ERROR_REPLIES["insufficient_funds"]))
        self.assertEqual(self.repo.get_balance("telegram:2"), 100)


class DiscordHandlerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.repo = InMemoryAccountRepository()
        self.repo.add_account(Account(id="discord:1", username="Admin", balance=100))
        self.repo.add_account(Account(id="discord:2", username="Player", balance=100))
        settings = Settings(discord_token="token", admin_ids=frozenset({"discord:1"}))
        engine = WagerEngine(self.repo, draw=scripted_draws(CoinSide.HEADS))

        self.bot = create_discord_bot(settings, self.repo, engine, ShopCatalog(prices={"ram": 5}))

    def context(self, user_id):
        author = SimpleNamespace(
            id=user_id, display_name="Player", name="player", mention=f"<@{user_id}>"
        )
        return SimpleNamespace(author=author, send=AsyncMock())

    async def test_flip(self):
        ctx = self.context(2)
        await self.bot.get_command("flip").callback(ctx, "heads", "40")

        self.assertEqual(self.repo.get_balance("discord:2"), 140)
        reply = ctx.send.await_args.args[0]
        self.assertTrue(reply.startswith("<@2> Heads! You won 40 coins"))

    async def test_flip_with_unknown_side(self):
        ctx = self.context(2)
        await self.bot.get_command("flip").callback(ctx, "edge", "40")

        ctx.send.assert_awaited_once_with(ERROR_REPLIES["invalid_prediction"])
        self.assertEqual(self.repo.writes, 0)

    async def test_buy(self):
        ctx = self.context(2)
        await self.bot.get_command("buy").callback(ctx, "ram", "4")

        self.assertEqual(self.repo.get_balance("discord:2"), 80)
        self.assertEqual(self.repo.get_resources("discord:2"), {"ram": 4})

    async def test_grant(self):
        ctx = self.context(1)
        await self.bot.get_command("grant").callback(ctx, "discord:2", "25")
        self.assertEqual(self.repo.get_balance("discord:2"), 125)

        ctx = self.context(2)
        await self.bot.get_command("grant").callback(ctx, "discord:2", "25")
        ctx.send.assert_awaited_once_with(NOT_ADMIN_REPLY)
        self.assertEqual(self.repo.get_balance("discord:2"), 125)


if __name__ == "__main__":
    unittest.main()
