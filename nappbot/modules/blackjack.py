# nappbot/modules/blackjack.py
"""Blackjack against a dealer who stands on 17 or higher."""
from __future__ import annotations
import logging
from fractions import Fraction
from typing import Any, Dict, FrozenSet, List

from nappbot.modules.cards import RandomSource, standard_deck
from nappbot.modules.errors import DeckExhausted
from nappbot.modules.rules import GameRules
from nappbot.modules.session import GameKind, Resolution, Result, Session

log = logging.getLogger("nappbot.modules.blackjack")

HIT = "hit"
STAND = "stand"
DOUBLE = "double"
DEALER_STANDS_ON = 17


def hand_value(hand: List[Dict[str, str]]) -> int:
    total = 0
    aces = 0
    for card in hand:
        rank = card.get("rank")
        if rank == "A":
            aces += 1
            total += 11
        elif rank in ("J", "Q", "K"):
            total += 10
        else:
            total += int(rank)
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1
    return total


def is_natural(hand: List[Dict[str, str]]) -> bool:
    return len(hand) == 2 and hand_value(hand) == 21


def hand_tip(total: int) -> str:
    if total <= 11:
        return "Low total. Consider hitting unless the dealer shows a bust card."
    if total <= 16:
        return "Risky zone. Consider standing if the dealer shows a weak card (2-6), otherwise hit."
    if total <= 20:
        return "Strong hand. Standing is generally recommended."
    if total == 21:
        return "Blackjack! The best possible hand."
    return "Bust! Your hand is over 21."


def _draw_into(rng: RandomSource, deck: List[Dict[str, str]], hand: List[Dict[str, str]]) -> bool:
    try:
        hand.append(rng.draw_card(deck))
    except DeckExhausted:
        log.warning("[blackjack] deck exhausted, continuing with %s cards in hand", len(hand))
        return False
    return True


class BlackjackRules(GameRules):
    kind = GameKind.BLACKJACK
    has_decisions = True

    def __init__(self, natural_multiplier: Fraction = Fraction(1)):
        self.natural_multiplier = Fraction(natural_multiplier)

    def deal(self, rng: RandomSource, params: Dict[str, Any]) -> Dict[str, Any]:
        deck = standard_deck()
        player: List[Dict[str, str]] = []
        dealer: List[Dict[str, str]] = []
        for hand in (player, dealer, player, dealer):
            _draw_into(rng, deck, hand)
        return {
            "deck": deck,
            "player_hand": player,
            "dealer_hand": dealer,
            "doubled": False,
            "natural": is_natural(player),
            "turn_over": hand_value(player) >= 21,
        }

    def is_turn_over(self, round_data: Dict[str, Any]) -> bool:
        return bool(round_data.get("turn_over"))

    def legal_moves(self, round_data: Dict[str, Any]) -> FrozenSet[str]:
        if round_data.get("turn_over"):
            return frozenset()
        player = round_data.get("player_hand") or []
        moves = {STAND}
        if hand_value(player) < 21:
            moves.add(HIT)
            if len(player) == 2 and not round_data.get("doubled"):
                moves.add(DOUBLE)
        return frozenset(moves)

    def move_cost(self, session: Session, move: str) -> int:
        if move == DOUBLE:
            return session.base_stake
        return 0

    def apply_move(self, rng: RandomSource, round_data: Dict[str, Any], move: str) -> bool:
        deck = round_data["deck"]
        player = round_data["player_hand"]
        if move == HIT:
            if not _draw_into(rng, deck, player):
                round_data["turn_over"] = True
            elif hand_value(player) >= 21:
                round_data["turn_over"] = True
        elif move == DOUBLE:
            round_data["doubled"] = True
            _draw_into(rng, deck, player)
            round_data["turn_over"] = True
        elif move == STAND:
            round_data["turn_over"] = True
        else:
            raise ValueError(f"unknown blackjack move {move!r}")
        return bool(round_data["turn_over"])

    def resolve(self, rng: RandomSource, round_data: Dict[str, Any]) -> Resolution:
        player = round_data.get("player_hand") or []
        dealer = round_data.get("dealer_hand") or []
        if round_data.get("natural"):
            if is_natural(dealer):
                return Resolution(Result.PUSH)
            return Resolution(Result.WIN, self.natural_multiplier)

        player_total = hand_value(player)
        if player_total > 21:
            return Resolution(Result.LOSS)

        deck = round_data.get("deck") or []
        while hand_value(dealer) < DEALER_STANDS_ON:
            if not _draw_into(rng, deck, dealer):
                break
        round_data["dealer_hand"] = dealer
        dealer_total = hand_value(dealer)

        if dealer_total > 21 or player_total > dealer_total:
            return Resolution(Result.WIN, Fraction(1))
        if player_total == dealer_total:
            return Resolution(Result.PUSH)
        return Resolution(Result.LOSS)

    def replay_stake(self, session: Session) -> int:
        # a double-down belongs to the hand, not to the bet being replayed
        return session.base_stake
