# nappbot/cmds/games.py
# Slash commands for the wager games. Every command hands off to the session engine
# (blocking ledger I/O runs in a worker thread) and posts the resulting embed.
import asyncio
from typing import Any, Dict, Optional

import discord
from discord import app_commands

import nappbot
from nappbot.inc.logging import logger
from nappbot.modules.errors import WagerError
from nappbot.modules.session import GameKind
from nappbot.views.games import send_session

bot = nappbot.bot

DEFAULT_MIN_BET = 10


def _min_bet() -> int:
    settings = getattr(nappbot, "settings", None)
    if settings is None:
        return DEFAULT_MIN_BET
    return settings.get("GAMES.min_bet", DEFAULT_MIN_BET, cast=int)


async def _play(interaction: discord.Interaction, kind: GameKind, bet: int, params: Optional[Dict[str, Any]] = None):
    minimum = _min_bet()
    if bet < minimum:
        return await interaction.response.send_message(f"❌ The minimum bet is **{minimum}** coins.", ephemeral=True)
    user_id = str(interaction.user.id)
    try:
        session = await asyncio.to_thread(nappbot.engine.start_session, user_id, kind, bet, params)
    except WagerError as exc:
        return await interaction.response.send_message(exc.message, ephemeral=True)
    logger.info(f"[games] {interaction.user} ({user_id}) bet {bet} on {kind.value}, session {session.session_id}")
    await send_session(interaction, nappbot.engine, session, nappbot.renderer)


@bot.tree.command(name="blackjack", description="🃏 Play a game of blackjack!", guild=discord.Object(id=nappbot.guildid))
@app_commands.describe(bet="The amount of coins to bet")
async def blackjack(interaction: discord.Interaction, bet: int):
    await _play(interaction, GameKind.BLACKJACK, bet)


@bot.tree.command(name="roulette", description="🎡 Bet on a spin of the roulette wheel", guild=discord.Object(id=nappbot.guildid))
@app_commands.describe(bet="The amount of coins to bet", bet_type="What to bet on", number="Your number (0-36) for a number bet")
@app_commands.choices(bet_type=[
    app_commands.Choice(name="Number (35x)", value="number"),
    app_commands.Choice(name="Red", value="red"),
    app_commands.Choice(name="Black", value="black"),
    app_commands.Choice(name="Even", value="even"),
    app_commands.Choice(name="Odd", value="odd"),
    app_commands.Choice(name="Low (1-18)", value="low"),
    app_commands.Choice(name="High (19-36)", value="high"),
])
async def roulette(interaction: discord.Interaction, bet: int, bet_type: app_commands.Choice[str], number: Optional[int] = None):
    await _play(interaction, GameKind.ROULETTE, bet, {"bet_type": bet_type.value, "number": number})


@bot.tree.command(name="war", description="⚔️ Draw a card against the dealer, highest card wins", guild=discord.Object(id=nappbot.guildid))
@app_commands.describe(bet="The amount of coins to bet")
async def war(interaction: discord.Interaction, bet: int):
    await _play(interaction, GameKind.WAR, bet)


@bot.tree.command(name="slots", description="🎰 Spin the slot machine", guild=discord.Object(id=nappbot.guildid))
@app_commands.describe(bet="The amount of coins to bet")
async def slots(interaction: discord.Interaction, bet: int):
    await _play(interaction, GameKind.SLOTS, bet)


@bot.tree.command(name="higherlower", description="🔢 Higher or lower, double or nothing", guild=discord.Object(id=nappbot.guildid))
@app_commands.describe(bet="The amount of coins to bet")
async def higherlower(interaction: discord.Interaction, bet: int):
    await _play(interaction, GameKind.HIGHERLOWER, bet)


async def setup(_bot):
    # slash commands are registered via bot.tree; nothing to add here
    pass
