import logging
from typing import Dict
from .config import LOG_LEVEL, LOG_LEVELS

ROOT = "alert-bot"

class Color:
    RESET="\x1b[0m"; GRAY="\x1b[90m"; GREEN="\x1b[32m"; YELLOW="\x1b[33m"; RED="\x1b[31m"
    BLUE="\x1b[34m"; CYAN="\x1b[36m"; MAGENTA="\x1b[35m"; BOLD="\x1b[1m"

class ColorFormatter(logging.Formatter):
    """time | level | component | message, with the `alert-bot.` prefix dropped from our own loggers."""
    COLORS={"DEBUG":Color.BLUE,"INFO":Color.GREEN,"WARNING":Color.YELLOW,"ERROR":Color.RED,"CRITICAL":Color.RED+Color.BOLD}
    COMPONENTS={"monitor":Color.MAGENTA,"wallets":Color.CYAN,"chain":Color.BLUE}
    def format(self, rec):
        lvl=f"{self.COLORS.get(rec.levelname,'')}{rec.levelname}{Color.RESET}"
        t=f"{Color.GRAY}{self.formatTime(rec, '%H:%M:%S')}{Color.RESET}"
        name=rec.name[len(ROOT)+1:] if rec.name.startswith(ROOT + ".") else rec.name
        color=self.COMPONENTS.get(name.split(".")[0], Color.GRAY)
        return f"{t} | {lvl} | {color}{name}{Color.RESET} | {super().format(rec)}"

def parse_levels(spec: str) -> Dict[str, str]:
    """`chain=DEBUG,monitor=warning` -> {"chain": "DEBUG", "monitor": "WARNING"}; bad pairs are ignored."""
    out = {}
    for part in (spec or "").split(","):
        comp, sep, lvl = part.partition("=")
        comp, lvl = comp.strip(), lvl.strip().upper()
        if sep and comp and isinstance(logging.getLevelName(lvl), int):
            out[comp] = lvl
    return out

def get_logger(component: str) -> logging.Logger:
    return log.getChild(component)

def setup_logging(level: str = LOG_LEVEL, overrides: str = LOG_LEVELS):
    root = logging.getLogger()
    root.setLevel(level)
    h = logging.StreamHandler()
    h.setFormatter(ColorFormatter("%(message)s"))
    root.handlers[:] = [h]
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("discord").setLevel(logging.WARNING)
    logging.getLogger("discord.gateway").setLevel(logging.INFO)
    for comp, lvl in parse_levels(overrides).items():
        get_logger(comp).setLevel(lvl)

log = logging.getLogger(ROOT)
