# nappbot/modules/roulette.py
"""Single-zero roulette."""
from __future__ import annotations
from fractions import Fraction
from typing import Any, Dict, Optional

from nappbot.modules.cards import RandomSource
from nappbot.modules.errors import IllegalMove
from nappbot.modules.rules import GameRules
from nappbot.modules.session import GameKind, Resolution, Result

# pockets in wheel order
WHEEL = [
    (0, "green"), (32, "red"), (15, "black"), (19, "red"), (4, "black"), (21, "red"),
    (2, "black"), (25, "red"), (17, "black"), (34, "red"), (6, "black"), (27, "red"),
    (13, "black"), (36, "red"), (11, "black"), (30, "red"), (8, "black"), (23, "red"),
    (10, "black"), (5, "red"), (24, "black"), (16, "red"), (33, "black"), (1, "red"),
    (20, "black"), (14, "red"), (31, "black"), (9, "red"), (22, "black"), (18, "red"),
    (29, "black"), (7, "red"), (28, "black"), (12, "red"), (35, "black"), (3, "red"),
    (26, "black"),
]
COLORS = dict(WHEEL)
COLOR_EMOJIS = {"red": "🔴", "black": "⚫", "green": "🟢"}

BET_TYPES = ("number", "red", "black", "even", "odd", "low", "high")
NUMBER_PAYOUT = Fraction(35)
EVEN_MONEY = Fraction(1)


def bet_wins(bet_type: str, chosen: Optional[int], number: int, color: str) -> bool:
    if bet_type == "number":
        return chosen == number
    if bet_type in ("red", "black"):
        return color == bet_type
    if bet_type == "even":
        return number != 0 and number % 2 == 0
    if bet_type == "odd":
        return number % 2 == 1
    if bet_type == "low":
        return 1 <= number <= 18
    if bet_type == "high":
        return 19 <= number <= 36
    return False


def describe_bet(bet_type: str, chosen: Optional[int]) -> str:
    if bet_type == "number":
        return f"Number {chosen}"
    return bet_type.capitalize()


class RouletteRules(GameRules):
    kind = GameKind.ROULETTE

    def validate_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params or {})
        bet_type = str(params.get("bet_type") or "").strip().lower()
        if bet_type not in BET_TYPES:
            raise IllegalMove(f"❌ Unknown bet type `{bet_type or '?'}`.")
        number = params.get("number")
        if bet_type == "number":
            try:
                number = int(number)
            except (TypeError, ValueError):
                number = -1
            if not 0 <= number <= 36:
                raise IllegalMove("❌ Pick a number between 0 and 36.")
        else:
            number = None
        return {"bet_type": bet_type, "number": number}

    def deal(self, rng: RandomSource, params: Dict[str, Any]) -> Dict[str, Any]:
        # the wheel spins at resolution time
        return {"bet_type": params["bet_type"], "number": params.get("number"), "spin": None}

    def resolve(self, rng: RandomSource, round_data: Dict[str, Any]) -> Resolution:
        number, color = rng.draw_symbol(WHEEL)
        round_data["spin"] = {"number": number, "color": color}
        bet_type = round_data["bet_type"]
        if not bet_wins(bet_type, round_data.get("number"), number, color):
            return Resolution(Result.LOSS)
        return Resolution(Result.WIN, NUMBER_PAYOUT if bet_type == "number" else EVEN_MONEY)
