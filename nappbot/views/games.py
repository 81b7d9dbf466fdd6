# nappbot/views/games.py
# Embeds and buttons for the wager games.
# - one embed builder per game, all driven off the engine's Session
# - GameView adds a button per legal move, or a replay button once settled
# - DiscordRenderer edits the original message when a game times out
from __future__ import annotations
import asyncio
import threading
from typing import Callable, Dict, Optional

import discord

from nappbot.inc.logging import logger
from nappbot.modules import blackjack as bj
from nappbot.modules import higherlower as hl
from nappbot.modules.cards import format_card, format_hand
from nappbot.modules.errors import WagerError
from nappbot.modules.roulette import COLOR_EMOJIS, describe_bet
from nappbot.modules.session import GameKind, Result, Session, SessionState
from nappbot.modules.war import TIPS as WAR_TIPS

TITLES = {
    GameKind.BLACKJACK: "🃏 Blackjack",
    GameKind.ROULETTE: "🎡 Roulette",
    GameKind.WAR: "⚔️ War",
    GameKind.SLOTS: "🎰 Slots",
    GameKind.HIGHERLOWER: "🔢 Higher or Lower",
}

MOVE_BUTTONS = {
    bj.HIT: ("Hit", discord.ButtonStyle.primary),
    bj.STAND: ("Stand", discord.ButtonStyle.secondary),
    bj.DOUBLE: ("Double Down", discord.ButtonStyle.success),
    hl.HIGHER: ("Higher ⬆️", discord.ButtonStyle.primary),
    hl.LOWER: ("Lower ⬇️", discord.ButtonStyle.primary),
    hl.CASH_OUT: ("💰 Cash Out", discord.ButtonStyle.success),
}
MOVE_ORDER = (bj.HIT, bj.STAND, bj.DOUBLE, hl.HIGHER, hl.LOWER, hl.CASH_OUT)


def _colour(session: Session) -> discord.Colour:
    if session.state == SessionState.EXPIRED:
        return discord.Colour.orange()
    if session.state == SessionState.ERRORED:
        return discord.Colour.dark_grey()
    if session.outcome is None:
        return discord.Colour.blue()
    return {
        Result.WIN: discord.Colour.green(),
        Result.LOSS: discord.Colour.red(),
        Result.PUSH: discord.Colour.gold(),
    }[session.outcome.result]


def _streak_text(streak: int) -> str:
    if streak > 0:
        return f"🔥 {streak} win{'s' if streak != 1 else ''} in a row"
    if streak < 0:
        return f"🥶 {-streak} loss{'es' if streak != -1 else ''} in a row"
    return "—"


def _result_line(session: Session) -> str:
    if session.state == SessionState.EXPIRED:
        return f"⌛ Time's up! You forfeited your bet of **{session.stake}** coins."
    if session.state == SessionState.ERRORED:
        return "⚠️ Something went wrong while settling this game. Your coins will be returned."
    outcome = session.outcome
    if outcome is None:
        return ""
    if outcome.result == Result.WIN:
        if session.timed_out:
            return f"⌛ Time's up! You were cashed out and won **{outcome.payout}** coins!"
        return f"🎉 You won **{outcome.payout}** coins!"
    if outcome.result == Result.PUSH:
        return "🤝 Push! Your bet was returned."
    return f"💸 You lost **{session.stake}** coins."


def _outcome_fields(embed: discord.Embed, session: Session):
    outcome = session.outcome
    if outcome is None or session.state == SessionState.ERRORED:
        return
    if outcome.streak is not None:
        embed.add_field(name="Streak", value=_streak_text(outcome.streak), inline=True)
    if outcome.balance is not None:
        embed.add_field(name="Balance", value=f"💰 {outcome.balance} coins", inline=True)


def _blackjack_fields(embed: discord.Embed, session: Session):
    rd = session.round_data
    player = rd.get("player_hand") or []
    dealer = rd.get("dealer_hand") or []
    total = bj.hand_value(player)
    embed.add_field(name="Your Hand", value=f"{format_hand(player)} (Total: {total})", inline=True)
    if session.state == SessionState.AWAITING_DECISION and dealer:
        dealer_text = f"{format_card(dealer[0])} ?"
    else:
        dealer_text = f"{format_hand(dealer)} (Total: {bj.hand_value(dealer)})"
    embed.add_field(name="Dealer's Hand", value=dealer_text, inline=True)
    if session.state == SessionState.AWAITING_DECISION:
        embed.add_field(name="Tip", value=bj.hand_tip(total), inline=False)
    if rd.get("doubled"):
        embed.add_field(name="Doubled", value=f"Stake raised to **{session.stake}**", inline=False)


def _roulette_fields(embed: discord.Embed, session: Session):
    rd = session.round_data
    embed.add_field(name="Your Bet", value=describe_bet(rd.get("bet_type", ""), rd.get("number")), inline=True)
    spin = rd.get("spin")
    if spin:
        embed.add_field(
            name="The Ball Landed On",
            value=f"{COLOR_EMOJIS.get(spin['color'], '')} **{spin['number']}** ({spin['color']})",
            inline=True,
        )


def _war_fields(embed: discord.Embed, session: Session):
    rd = session.round_data
    embed.add_field(name="Your Card", value=format_card(rd.get("player_card")), inline=True)
    embed.add_field(name="Dealer's Card", value=format_card(rd.get("dealer_card")), inline=True)
    if session.outcome is not None:
        embed.add_field(name="Tip", value=WAR_TIPS[session.outcome.result], inline=False)


def _slots_fields(embed: discord.Embed, session: Session):
    grid = session.round_data.get("grid") or []
    rows = []
    for i, row in enumerate(grid):
        line = " | ".join(row)
        rows.append(f"▶ {line} ◀" if i == len(grid) // 2 else f"  {line}")
    embed.add_field(name="Reels", value="\n".join(rows) or "—", inline=False)


def _higherlower_fields(embed: discord.Embed, session: Session):
    rd = session.round_data
    streak = rd.get("streak", 0)
    if rd.get("next") is not None:
        embed.add_field(name="Last Number", value=f"**{rd.get('previous')}**", inline=True)
        embed.add_field(name="Your Guess", value=str(rd.get("guess", "")).capitalize(), inline=True)
        embed.add_field(name="Drawn", value=f"**{rd['next']}**", inline=True)
    if session.state == SessionState.AWAITING_DECISION:
        embed.add_field(name="Current Number", value=f"**{rd.get('current')}**", inline=True)
        if streak:
            embed.add_field(name="Pot", value=f"💰 {hl.pot(session.stake, streak)} coins ({streak} in a row)", inline=True)
            embed.add_field(
                name="Your Call",
                value=f"Keep going for **{hl.pot(session.stake, streak + 1)}** or cash out now.",
                inline=False,
            )
        else:
            embed.add_field(name="Your Call", value="Will the next number (1-100) be higher or lower?", inline=False)
    elif rd.get("cashed_out"):
        embed.add_field(name="Cashed Out", value=f"💰 {hl.pot(session.stake, streak)} coins after {streak} in a row", inline=False)


FIELD_BUILDERS: Dict[GameKind, Callable[[discord.Embed, Session], None]] = {
    GameKind.BLACKJACK: _blackjack_fields,
    GameKind.ROULETTE: _roulette_fields,
    GameKind.WAR: _war_fields,
    GameKind.SLOTS: _slots_fields,
    GameKind.HIGHERLOWER: _higherlower_fields,
}


def build_embed(session: Session) -> discord.Embed:
    embed = discord.Embed(
        title=TITLES.get(session.game_kind, "🎲 Game"),
        description=_result_line(session) or f"Bet: **{session.stake}** coins",
        colour=_colour(session),
    )
    FIELD_BUILDERS[session.game_kind](embed, session)
    _outcome_fields(embed, session)
    if session.state == SessionState.AWAITING_DECISION:
        if session.round_data.get("streak"):
            embed.set_footer(text=f"Decide before <t:{int(session.deadline_at)}:R> or the pot is cashed out for you.")
        else:
            embed.set_footer(text=f"Decide before <t:{int(session.deadline_at)}:R> or forfeit your bet.")
    elif session.replay_token:
        embed.set_footer(text="Press Play Again to replay the same bet.")
    return embed


class MoveButton(discord.ui.Button):
    def __init__(self, move: str, label: Optional[str] = None):
        default_label, style = MOVE_BUTTONS.get(move, (move.capitalize(), discord.ButtonStyle.secondary))
        super().__init__(label=label or default_label, style=style)
        self.move = move

    async def callback(self, interaction: discord.Interaction):
        view: GameView = self.view
        try:
            session = await asyncio.to_thread(
                view.engine.submit_move, view.session_id, self.move, str(interaction.user.id)
            )
        except WagerError as exc:
            await _reply_error(interaction, exc)
            return
        await interaction.response.edit_message(embed=build_embed(session), view=GameView.for_session(view.engine, session, view.renderer))


class ReplayButton(discord.ui.Button):
    def __init__(self, token: str):
        super().__init__(label="Play Again", style=discord.ButtonStyle.success, emoji="🔁")
        self.token = token

    async def callback(self, interaction: discord.Interaction):
        view: GameView = self.view
        try:
            session = await asyncio.to_thread(view.engine.replay, self.token, str(interaction.user.id))
        except WagerError as exc:
            await _reply_error(interaction, exc)
            return
        # the old message keeps its result but loses the button
        self.disabled = True
        try:
            await interaction.message.edit(view=view)
        except discord.HTTPException as exc:
            logger.debug(f"[games] could not disable replay button: {exc}")
        await send_session(interaction, view.engine, session, view.renderer)


class GameView(discord.ui.View):
    """Buttons for one session. Timing belongs to the engine, so the view never times out itself."""

    def __init__(self, engine, session_id: str, user_id: str, renderer: Optional["DiscordRenderer"] = None):
        super().__init__(timeout=None)
        self.engine = engine
        self.session_id = session_id
        self.user_id = str(user_id)
        self.renderer = renderer

    @classmethod
    def for_session(cls, engine, session: Session, renderer: Optional["DiscordRenderer"] = None) -> Optional["GameView"]:
        view = cls(engine, session.session_id, session.user_id, renderer)
        moves = engine.legal_moves(session)
        for move in MOVE_ORDER:
            if move in moves:
                view.add_item(MoveButton(move, _move_label(session, move)))
        if session.state == SessionState.SETTLED and session.replay_token:
            view.add_item(ReplayButton(session.replay_token))
        return view if view.children else None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if str(interaction.user.id) != self.user_id:
            await interaction.response.send_message("❌ That's not your game.", ephemeral=True)
            return False
        return True

    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item):
        logger.error(f"[games] button {getattr(item, 'label', '?')} failed on session {self.session_id}", exc_info=error)
        text = "💥 Something went wrong with that button."
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)


def _move_label(session: Session, move: str) -> Optional[str]:
    if move == hl.CASH_OUT:
        return f"💰 Cash Out ({hl.pot(session.stake, session.round_data.get('streak', 0))})"
    return None


async def _reply_error(interaction: discord.Interaction, exc: WagerError):
    if interaction.response.is_done():
        await interaction.followup.send(exc.message, ephemeral=True)
    else:
        await interaction.response.send_message(exc.message, ephemeral=True)


async def send_session(interaction: discord.Interaction, engine, session: Session, renderer: Optional["DiscordRenderer"] = None):
    """Post a freshly started session and remember its message for timeout edits."""
    view = GameView.for_session(engine, session, renderer)
    kwargs = {"embed": build_embed(session)}
    if view is not None:
        kwargs["view"] = view
    if interaction.response.is_done():
        message = await interaction.followup.send(wait=True, **kwargs)
    else:
        await interaction.response.send_message(**kwargs)
        message = await interaction.original_response()
    if renderer is not None and not session.is_terminal:
        renderer.track(session.session_id, message)
    return message


class DiscordRenderer:
    """
    Engine renderer. Moves and replays are drawn by the button that caused them;
    this only handles what happens with nobody clicking: a session running out of time,
    whether it was forfeited or cashed out for the player.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self._messages: Dict[str, discord.Message] = {}
        self._lock = threading.Lock()

    def track(self, session_id: str, message: discord.Message):
        with self._lock:
            self._messages[session_id] = message

    def __call__(self, session: Session, legal_moves) -> None:
        if not session.is_terminal:
            return
        with self._lock:
            message = self._messages.pop(session.session_id, None)
        if message is None or not session.timed_out:
            return
        asyncio.run_coroutine_threadsafe(self._edit(message, session), self.loop)

    async def _edit(self, message: discord.Message, session: Session):
        try:
            await message.edit(embed=build_embed(session), view=None)
        except discord.HTTPException as exc:
            logger.warning(f"[games] could not update timed out game {session.session_id}: {exc}")
