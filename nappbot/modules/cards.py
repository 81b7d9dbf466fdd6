# nappbot/modules/cards.py
"""Cards, decks and uniform draws used by the games."""
from __future__ import annotations
import random
from typing import Any, Dict, List, Optional, Sequence

from nappbot.modules.errors import DeckExhausted

RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
SUITS = ["spades", "hearts", "diamonds", "clubs"]
SUIT_EMOJIS = {"spades": "♠", "hearts": "♥", "diamonds": "♦", "clubs": "♣"}
# War ordering: ace high
WAR_VALUES = {r: i + 2 for i, r in enumerate(["2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A"])}


def make_card(rank: str, suit: str) -> Dict[str, str]:
    return {
        "rank": rank,
        "suit": suit,
        "code": f"{rank}{suit[0].upper()}",
        "name": f"{rank} of {suit.title()}",
    }


def standard_deck() -> List[Dict[str, str]]:
    return [make_card(rank, suit) for suit in SUITS for rank in RANKS]


def format_card(card: Optional[Dict[str, Any]]) -> str:
    if not card:
        return "?"
    return f"{card['rank']}{SUIT_EMOJIS.get(card['suit'], '?')}"


def format_hand(hand: Sequence[Dict[str, Any]]) -> str:
    return " ".join(format_card(c) for c in hand) if hand else "—"


class RandomSource:
    """Uniform draws. Holds no game state; pass a seeded ``random.Random`` for reproducible play."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.SystemRandom()

    def draw_card(self, deck: List[Dict[str, str]]) -> Dict[str, str]:
        """Remove and return a uniformly chosen card; raises DeckExhausted on an empty deck."""
        if not deck:
            raise DeckExhausted()
        return deck.pop(self._rng.randrange(len(deck)))

    def draw_uniform(self, low: int, high: int) -> int:
        return self._rng.randint(low, high)

    def draw_symbol(self, alphabet: Sequence[Any]) -> Any:
        if not alphabet:
            raise ValueError("empty alphabet")
        return alphabet[self._rng.randrange(len(alphabet))]
