import logging
import logging.handlers
import os

import nappbot

def _resolve_log_path() -> str:
    override = os.getenv("NAPPBOT_LOG_PATH")
    if override:
        return override
    settings = getattr(nappbot, "settings", None)
    if settings:
        base = settings.get("BOT.DATA_DIR", None)
        if base:
            return os.path.join(base, "discord.log")
    base = os.getenv("NAPPBOT__BOT__DATA_DIR") or os.getenv("NAPPBOT_DATA_DIR")
    if base:
        return os.path.join(base, "discord.log")
    return os.path.join(".nappbot", "discord.log")

logger = logging.getLogger('discord.nappbot')
logger.setLevel(logging.DEBUG)
logging.getLogger('discord.http').setLevel(logging.INFO)

log_path = _resolve_log_path()
log_dir = os.path.dirname(log_path)
if log_dir:
    os.makedirs(log_dir, exist_ok=True)

handler = logging.handlers.RotatingFileHandler(
    filename=log_path,
    encoding='utf-8',
    maxBytes=32 * 1024 * 1024,  # 32 MiB
    backupCount=5,
)

dt_fmt = '%Y-%m-%d %H:%M:%S'
formatter = logging.Formatter('[{asctime}] [{levelname:<8}] {name}: {message}', dt_fmt, style='{')
handler.setFormatter(formatter)
logger.addHandler(handler)

# game modules log under nappbot.*; route them into the same file
game_logger = logging.getLogger('nappbot')
game_logger.setLevel(logging.DEBUG)
game_logger.addHandler(handler)
