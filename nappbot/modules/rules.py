# nappbot/modules/rules.py
"""Per-game rules contract shared by every wager game."""
from __future__ import annotations
from typing import Any, Dict, FrozenSet, Optional

from nappbot.modules.cards import RandomSource
from nappbot.modules.session import GameKind, Resolution, Session


class GameRules:
    """
    A game plugs into the session engine by describing:
      - how a round is dealt from the bet parameters
      - which moves are legal right now (decision games only)
      - what a legal move does to the round
      - how a finished round resolves (win / loss / push and the multiplier)
      - what happens when the player runs out of time (forfeit unless the game says otherwise)
    Round data is a plain dict owned by the game; the engine never looks inside.
    """
    kind: GameKind
    has_decisions = False

    def validate_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Normalise bet parameters; raise IllegalMove when they make no sense."""
        return dict(params or {})

    def deal(self, rng: RandomSource, params: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def is_turn_over(self, round_data: Dict[str, Any]) -> bool:
        """True once no more player decisions are possible."""
        return True

    def legal_moves(self, round_data: Dict[str, Any]) -> FrozenSet[str]:
        return frozenset()

    def move_cost(self, session: Session, move: str) -> int:
        """Extra stake a move commits (e.g. a double-down)."""
        return 0

    def apply_move(self, rng: RandomSource, round_data: Dict[str, Any], move: str) -> bool:
        """Mutate the round for an already validated move; return True when the turn is over."""
        raise NotImplementedError

    def timeout_move(self, round_data: Dict[str, Any]) -> Optional[str]:
        """Move played for a player who runs out of time. None forfeits the stake."""
        return None

    def resolve(self, rng: RandomSource, round_data: Dict[str, Any]) -> Resolution:
        raise NotImplementedError

    def replay_stake(self, session: Session) -> int:
        return session.stake

    def replay_params(self, session: Session) -> Optional[Dict[str, Any]]:
        return dict(session.params)
