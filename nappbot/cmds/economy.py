# nappbot/cmds/economy.py
# Wallet and bank commands: /balance, /bank deposit, /bank withdraw
import asyncio
from typing import Optional

import discord
import psycopg2
from discord import app_commands

import nappbot
from nappbot.inc.database import get_database
from nappbot.inc.logging import logger
from nappbot.modules.interest import interest_rate

bot = nappbot.bot

STORE_DOWN = "❌ The bank is unreachable right now, try again later."


def _balance_embed(member: discord.abc.User, user: dict, title: str = "💰 Balance") -> discord.Embed:
    wallet = int(user.get("balance") or 0)
    bank = int(user.get("bank_balance") or 0)
    streak = int(user.get("streak") or 0)
    embed = discord.Embed(title=title, colour=discord.Colour.gold())
    embed.set_author(name=getattr(member, "display_name", str(member)))
    embed.add_field(name="Wallet", value=f"{wallet:,} coins", inline=True)
    embed.add_field(name="Bank", value=f"{bank:,} coins", inline=True)
    if streak:
        label = f"🔥 {streak} wins" if streak > 0 else f"🥶 {-streak} losses"
        embed.add_field(name="Streak", value=label, inline=True)
    if bank > 0:
        rate = interest_rate(bank, active=True)
        embed.set_footer(text=f"Your bank earns up to {float(rate) * 100:.0f}% interest every hour while you're active.")
    return embed


@bot.tree.command(name="balance", description="💰 Check your wallet and bank balance", guild=discord.Object(id=nappbot.guildid))
@app_commands.describe(member="Whose balance to look up (defaults to you)")
async def balance(interaction: discord.Interaction, member: Optional[discord.Member] = None):
    target = member or interaction.user
    try:
        user = await asyncio.to_thread(get_database().get_user, str(target.id))
    except psycopg2.Error as exc:
        logger.error(f"[economy] balance lookup for {target.id} failed: {exc}")
        return await interaction.response.send_message(STORE_DOWN, ephemeral=True)
    await interaction.response.send_message(embed=_balance_embed(target, user), ephemeral=member is None)


bank = app_commands.Group(name="bank", description="🏦 Move coins between your wallet and the bank")


async def _transfer(interaction: discord.Interaction, amount: int, verb: str):
    if amount <= 0:
        return await interaction.response.send_message("❌ The amount has to be more than zero.", ephemeral=True)
    signed = amount if verb == "deposit" else -amount
    user_id = str(interaction.user.id)
    try:
        moved = await asyncio.to_thread(get_database().transfer_to_bank, user_id, signed)
    except psycopg2.Error as exc:
        logger.error(f"[economy] {verb} of {amount} for {user_id} failed: {exc}")
        return await interaction.response.send_message(STORE_DOWN, ephemeral=True)
    if moved is None:
        where = "wallet" if verb == "deposit" else "bank"
        return await interaction.response.send_message(f"❌ You don't have {amount:,} coins in your {where}.", ephemeral=True)
    logger.info(f"[economy] {user_id} {verb} {amount}")
    title = "🏦 Deposited" if verb == "deposit" else "🏦 Withdrew"
    await interaction.response.send_message(
        embed=_balance_embed(interaction.user, moved, title=f"{title} {amount:,} coins"), ephemeral=True
    )


@bank.command(name="deposit", description="Put coins from your wallet into the bank")
@app_commands.describe(amount="How many coins to deposit")
async def deposit(interaction: discord.Interaction, amount: int):
    await _transfer(interaction, amount, "deposit")


@bank.command(name="withdraw", description="Take coins out of the bank into your wallet")
@app_commands.describe(amount="How many coins to withdraw")
async def withdraw(interaction: discord.Interaction, amount: int):
    await _transfer(interaction, amount, "withdraw")


bot.tree.add_command(bank, guild=discord.Object(id=nappbot.guildid))


async def setup(_bot):
    # slash commands are registered via bot.tree; nothing to add here
    pass
