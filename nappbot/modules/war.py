# nappbot/modules/war.py
"""Casino war: one card each, ace high."""
from __future__ import annotations
from fractions import Fraction
from typing import Any, Dict

from nappbot.modules.cards import WAR_VALUES, RandomSource, standard_deck
from nappbot.modules.rules import GameRules
from nappbot.modules.session import GameKind, Resolution, Result

TIPS = {
    Result.WIN: "🔥 Keep up the streak! Maybe raise your bet?",
    Result.LOSS: "❌ Bad luck! Maybe lower your bet to recover?",
    Result.PUSH: "⚖️ A tie! Consider playing again for a better outcome.",
}


class WarRules(GameRules):
    kind = GameKind.WAR

    def deal(self, rng: RandomSource, params: Dict[str, Any]) -> Dict[str, Any]:
        deck = standard_deck()
        return {"player_card": rng.draw_card(deck), "dealer_card": rng.draw_card(deck)}

    def resolve(self, rng: RandomSource, round_data: Dict[str, Any]) -> Resolution:
        player = WAR_VALUES[round_data["player_card"]["rank"]]
        dealer = WAR_VALUES[round_data["dealer_card"]["rank"]]
        if player > dealer:
            return Resolution(Result.WIN, Fraction(1))
        if player < dealer:
            return Resolution(Result.LOSS)
        return Resolution(Result.PUSH)
