from abc import ABC, abstractmethod
from typing import List, Optional
from dataclasses import dataclass


@dataclass
class ShowResult:
    id: int
    name: str
    premiered: Optional[str] = None


@dataclass
class EpisodeInfo:
    id: int
    season: int
    number: int
    title: str
    airdate: Optional[str] = None
    airtime: Optional[str] = None
    airstamp: Optional[str] = None


class ShowSource(ABC):
    """Base class for show metadata providers"""

    name: str = "unknown"

    @abstractmethod
    async def search(self, query: str) -> List[ShowResult]:
        """Search shows by name"""

    @abstractmethod
    async def list_episodes(self, show_id: int) -> List[EpisodeInfo]:
        """All episodes of a show"""
