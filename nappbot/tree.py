import asyncio
import nappbot
from nappbot.inc.database import get_database
from nappbot.modules.errors import WagerError
from nappbot.modules.interest import apply_interest
from nappbot.modules.timers import AsyncioScheduler
from nappbot.views.games import DiscordRenderer
import discord
from discord import app_commands
from discord.ext import commands
# -------
# Base bot class
# -------

DEFAULT_INTEREST_INTERVAL = 3600
DEFAULT_SWEEP_INTERVAL = 60
GENERIC_FAILURE = "💥 Something went wrong running that command."


class NappTree(app_commands.CommandTree):
    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        original = getattr(error, "original", error)
        if isinstance(original, WagerError):
            text = original.message
        else:
            name = interaction.command.name if interaction.command else "?"
            nappbot.loch.logger.error(f"[commands] /{name} failed for {interaction.user.id}", exc_info=original)
            text = GENERIC_FAILURE
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)


class NappBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.members = True

        super().__init__(command_prefix=commands.when_mentioned_or('/'), intents=intents, tree_cls=NappTree)
        self._interest_task = None
        self._sweep_task = None

    async def setup_hook(self):
        # the engine was built before the loop existed; hand it the loop-bound hooks now
        loop = asyncio.get_running_loop()
        engine = nappbot.engine
        engine.scheduler = AsyncioScheduler(loop, clock=engine.clock).bind(engine)
        nappbot.renderer = engine.renderer = DiscordRenderer(loop)
        for cmd_file in sorted(nappbot.view_dir.glob("*.py")):
            if cmd_file.name != "__init__.py":
                await self.load_extension(f"nappbot.cmds.{cmd_file.name[:-3]}")

    async def on_ready(self):
        await self.change_presence(activity=discord.Game(name="🎰 /blackjack /slots /roulette"))
        nappbot.loch.logger.info(f'Logged in as {self.user} (ID: {self.user.id})')
        guild = discord.Object(id=nappbot.guildid)
        synced = await self.tree.sync(guild=guild)
        nappbot.loch.logger.info(f'Synced {len(synced)} commands to guild {nappbot.guildid}')

        if self._interest_task is None:
            self._interest_task = asyncio.create_task(self._interest_loop())
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def _interest_loop(self):
        interval = nappbot.settings.get("ECONOMY.interest_interval", DEFAULT_INTEREST_INTERVAL, cast=int)
        window = nappbot.settings.get("ECONOMY.active_window_hours", 24, cast=int)
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(apply_interest, get_database(), window)
            except Exception as e:
                nappbot.loch.logger.warning(f"[interest] application failed: {e}")

    async def _sweep_loop(self):
        interval = nappbot.settings.get("GAMES.sweep_interval", DEFAULT_SWEEP_INTERVAL, cast=float)
        engine = nappbot.engine
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(engine.sweep)
                if engine.errored_sessions():
                    await asyncio.to_thread(engine.reconcile_errored)
            except Exception as e:
                nappbot.loch.logger.warning(f"[engine] sweep failed: {e}")
