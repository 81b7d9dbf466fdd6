# -------
# Imports
# -------
import os
import threading

# -------
# From imports
# -------
from pathlib import Path
from nappbot.inc.settings import load_settings

# predefine boolean
__initialized__ = False

# predefined vars
settings = workingdir = view_dir = guildid = bot = None
engine = ledger = renderer = loch = None

# predefined strings
token = ''

# Threading
thread_lock = threading.Lock()
threading.current_thread().name = 'NappBot'


# Initialize module
def initialize():
    with thread_lock:
        global __initialized__, settings, workingdir, view_dir, guildid, bot, token, engine, ledger, loch

        workingdir = Path(__file__).parent
        view_dir = workingdir / "cmds"

        settings = load_settings()  # env overlays applied automatically
        settings.require("BOT", "guildid")

        import nappbot.inc.logging as _loch
        loch = _loch

        # Bot basics
        guildid = settings.get("BOT.guildid", 0, cast=int)
        token = os.getenv("DISCORD_TOKEN") or settings.get("BOT.token", "", str)
        if not token:
            loch.logger.error("[init] no Discord token configured (BOT.token or DISCORD_TOKEN)")
            return False

        # Economy + games
        from nappbot.inc.database import ensure_database
        from nappbot.modules.engine import SessionEngine, default_rules
        from nappbot.modules.ledger import default_ledger
        from fractions import Fraction

        ensure_database()
        ledger = default_ledger()
        engine = SessionEngine(
            ledger,
            rules=default_rules(settings.get("GAMES.blackjack_natural_multiplier", Fraction(1), cast=Fraction)),
            decision_timeout=settings.get("GAMES.decision_timeout", 60, cast=float),
            replay_window=settings.get("GAMES.replay_window", 30, cast=float),
        )

        # Bring up the bot; commands load in setup_hook
        from nappbot import tree
        bot = tree.NappBot()
        __initialized__ = True

    return True
