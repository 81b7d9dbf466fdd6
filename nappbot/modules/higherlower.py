# nappbot/modules/higherlower.py
"""
Higher or lower, double or nothing.

The player guesses whether the next number (1-100) is higher or lower than the current one.
Every correct guess doubles the pot (stake * 2^streak) and the drawn number becomes the
current one; the player then guesses again or cashes out. One wrong guess loses the stake.
A player who goes quiet with a pot on the table is cashed out for it.
"""
from __future__ import annotations
from fractions import Fraction
from typing import Any, Dict, FrozenSet, Optional

from nappbot.modules.cards import RandomSource
from nappbot.modules.rules import GameRules
from nappbot.modules.session import GameKind, Resolution, Result

HIGHER = "higher"
LOWER = "lower"
CASH_OUT = "cashout"
LOW = 1
HIGH = 100


def pot(stake: int, streak: int) -> int:
    """What cashing out pays back after ``streak`` correct guesses, stake included."""
    return stake * 2 ** streak


class HigherLowerRules(GameRules):
    kind = GameKind.HIGHERLOWER
    has_decisions = True

    def deal(self, rng: RandomSource, params: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "current": rng.draw_uniform(LOW, HIGH),
            "streak": 0,
            "previous": None,
            "guess": None,
            "next": None,
            "redraws": 0,
            "lost": False,
            "cashed_out": False,
        }

    def is_turn_over(self, round_data: Dict[str, Any]) -> bool:
        return round_data["lost"] or round_data["cashed_out"]

    def legal_moves(self, round_data: Dict[str, Any]) -> FrozenSet[str]:
        if self.is_turn_over(round_data):
            return frozenset()
        if round_data["streak"]:
            return frozenset({HIGHER, LOWER, CASH_OUT})
        return frozenset({HIGHER, LOWER})

    def apply_move(self, rng: RandomSource, round_data: Dict[str, Any], move: str) -> bool:
        if move == CASH_OUT:
            round_data["cashed_out"] = True
            return True
        if move not in (HIGHER, LOWER):
            raise ValueError(f"unknown higher-lower move {move!r}")

        current = round_data["current"]
        nxt = rng.draw_uniform(LOW, HIGH)
        while nxt == current:
            round_data["redraws"] += 1
            nxt = rng.draw_uniform(LOW, HIGH)
        round_data["previous"] = current
        round_data["guess"] = move
        round_data["next"] = nxt
        if (move == HIGHER and nxt > current) or (move == LOWER and nxt < current):
            round_data["streak"] += 1
            round_data["current"] = nxt
            return False
        round_data["lost"] = True
        return True

    def timeout_move(self, round_data: Dict[str, Any]) -> Optional[str]:
        if round_data["streak"] and not self.is_turn_over(round_data):
            return CASH_OUT
        return None

    def resolve(self, rng: RandomSource, round_data: Dict[str, Any]) -> Resolution:
        if round_data["lost"]:
            return Resolution(Result.LOSS)
        if not round_data["cashed_out"]:
            raise ValueError("higher-lower round resolved before it was over")
        # net profit on top of the returned stake
        return Resolution(Result.WIN, Fraction(2 ** round_data["streak"] - 1))
