import unittest

from application.wager import parse_prediction, parse_stake, parse_wager_request
from domain.errors import InvalidPrediction, InvalidStake
from domain.models import CoinSide


class ParseWagerRequestTests(unittest.TestCase):
    def test_chat_arguments(self):
        request = parse_wager_request("discord:1", "Heads", " 25 ")
        self.assertEqual(request.account_id, "discord:1")
        self.assertEqual(request.predicted_outcome, CoinSide.HEADS)
        self.assertEqual(request.stake, 25)

    def test_legacy_integer_decision(self):
        self.assertEqual(parse_prediction(0), CoinSide.HEADS)
        self.assertEqual(parse_prediction(1), CoinSide.TAILS)
        self.assertEqual(parse_prediction("1"), CoinSide.TAILS)

    def test_short_names(self):
        self.assertEqual(parse_prediction("h"), CoinSide.HEADS)
        self.assertEqual(parse_prediction("T"), CoinSide.TAILS)
        self.assertEqual(parse_prediction(CoinSide.TAILS), CoinSide.TAILS)

    def test_bad_predictions(self):
        for raw in ("edge", "", 2, 0.5, None, True):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidPrediction):
                    parse_prediction(raw)

    def test_bad_stakes(self):
        for raw in ("0", "-3", "ten", "1.5", 1.5, 0, -1, None, False, ""):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidStake):
                    parse_stake(raw)

    def test_overlong_digit_strings_are_rejected(self):
        with self.assertRaises(InvalidStake):
            parse_stake("9" * 5000)
        with self.assertRaises(InvalidStake):
            parse_stake("1" + "0" * 18)
        self.assertEqual(parse_stake("9" * 18), 10 ** 18 - 1)
        with self.assertRaises(InvalidPrediction):
            parse_prediction("0" * 5000)

    def test_stake_error_wins_over_prediction_error(self):
        with self.assertRaises(InvalidStake):
            parse_wager_request("x", "edge", "zero")


if __name__ == "__main__":
    unittest.main()
