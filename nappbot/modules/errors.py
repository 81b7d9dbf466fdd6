# nappbot/modules/errors.py
"""Wager errors. Every error carries a short message the bot can show the user."""
from __future__ import annotations
from typing import Optional


class WagerError(Exception):
    message = "❌ Something went wrong with your game."

    def __init__(self, message: Optional[str] = None, *, session=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.session = session


class InsufficientFunds(WagerError):
    message = "❌ You don't have enough coins for this bet!"

    def __init__(self, message: Optional[str] = None, *, need: int = 0, have: int = 0, session=None):
        super().__init__(message, session=session)
        self.need = need
        self.have = have


class SessionAlreadyActive(WagerError):
    message = "❌ You already have a game of this kind running."


class SessionNotFound(WagerError):
    message = "❌ That game is no longer running."


class SessionAlreadyTerminal(WagerError):
    message = "❌ That game has already finished."


class IllegalMove(WagerError):
    message = "❌ You can't do that right now."


class DeckExhausted(WagerError):
    message = "❌ The deck ran out of cards."


class StoreUnavailable(WagerError):
    message = "❌ The bank is unreachable right now, try again later."

    def __init__(self, message: Optional[str] = None, *, operation: str = "", session=None):
        super().__init__(message, session=session)
        self.operation = operation


class ReplayExpired(WagerError):
    message = "❌ That replay button has expired."


class Forbidden(WagerError):
    message = "❌ That's not your game."
