"""
Upstream adapters for the store service.
"""

from .game_data_client import GameDataClient
from .riot_client import RiotClient

__all__ = ["GameDataClient", "RiotClient"]
