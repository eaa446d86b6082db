from cryptoalertbot.config import DISCORD_TOKEN
from cryptoalertbot.logging_setup import setup_logging, log
from cryptoalertbot.bot import Bot

if __name__ == "__main__":
    setup_logging()
    if not DISCORD_TOKEN:
        log.error("DISCORD_TOKEN is not set")
        raise SystemExit(1)
    bot = Bot()
    bot.run(DISCORD_TOKEN, log_handler=None)
