"""House bots: a strategy adapter plus a baseline policy."""

from .adapter import BotDriver, BotStrategy
from .baseline import BaselineStrategy

__all__ = ["BotDriver", "BotStrategy", "BaselineStrategy"]
