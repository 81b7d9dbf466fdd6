# nappbot/modules/slots.py
"""Three-reel slot machine paying on the middle row."""
from __future__ import annotations
from fractions import Fraction
from typing import Any, Dict, List, Optional

from nappbot.modules.cards import RandomSource
from nappbot.modules.rules import GameRules
from nappbot.modules.session import GameKind, Resolution, Result

SYMBOLS = ["🍒", "🍋", "🍊", "🍉", "⭐", "💎"]
JACKPOT_SYMBOL = "💎"
LINE_PAYOUT = Fraction(3)
JACKPOT_PAYOUT = Fraction(10)
ROWS = 3
REELS = 3


def payline(grid: List[List[str]]) -> List[str]:
    return grid[ROWS // 2]


class SlotsRules(GameRules):
    kind = GameKind.SLOTS

    def __init__(self, symbols: Optional[List[str]] = None, jackpot_symbol: str = JACKPOT_SYMBOL):
        self.symbols = list(symbols or SYMBOLS)
        self.jackpot_symbol = jackpot_symbol

    def deal(self, rng: RandomSource, params: Dict[str, Any]) -> Dict[str, Any]:
        grid = [[rng.draw_symbol(self.symbols) for _ in range(REELS)] for _ in range(ROWS)]
        return {"grid": grid}

    def resolve(self, rng: RandomSource, round_data: Dict[str, Any]) -> Resolution:
        line = payline(round_data["grid"])
        if len(set(line)) != 1:
            return Resolution(Result.LOSS)
        if line[0] == self.jackpot_symbol:
            return Resolution(Result.WIN, JACKPOT_PAYOUT)
        return Resolution(Result.WIN, LINE_PAYOUT)
