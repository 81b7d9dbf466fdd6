# -------
# NappBot: wager games and a small economy for Discord
# -------

import nappbot
import sys

def start():
    try:
        if nappbot.initialize():
            nappbot.bot.run(nappbot.token)
        else:
            print("❌ NappBot failed to initialize (see logs for details).")
            sys.exit(1)
    except KeyboardInterrupt:
        print("\n🎰 NappBot gracefully stopped by user.")
    except Exception as e:
        print(f"💥 Unhandled startup exception: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

if __name__ == "__main__":
    start()
