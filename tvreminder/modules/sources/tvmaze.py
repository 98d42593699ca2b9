"""
TVMaze API Client
"""
import asyncio
import logging
from typing import List

import aiohttp

from tvreminder.errors import SourceError, SourceTimeoutError
from tvreminder.modules.sources.base import ShowSource, ShowResult, EpisodeInfo
from tvreminder.utils.network import create_aiohttp_session


logger = logging.getLogger(__name__)


class TVMazeSource(ShowSource):
    BASE_URL = "https://api.tvmaze.com"

    name = "tvmaze"

    def __init__(self, timeout: float = 5.0, base_url: str = None):
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")

    async def _get_json(self, path: str, params: dict = None):
        url = f"{self.base_url}{path}"
        try:
            async with create_aiohttp_session(timeout=self.timeout) as session:
                async with session.get(url, params=params) as resp:
                    if resp.status != 200:
                        raise SourceError(f"TVMaze {path}: HTTP {resp.status}")
                    return await resp.json()
        except asyncio.TimeoutError as e:
            raise SourceTimeoutError(f"TVMaze {path}: timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise SourceError(f"TVMaze {path}: {e}") from e

    async def search(self, query: str) -> List[ShowResult]:
        logger.info(f"Searching TVMaze for {query!r}")
        data = await self._get_json("/search/shows", params={"q": query})

        results = []
        for item in data or []:
            show = item.get("show") if isinstance(item, dict) else None
            if not isinstance(show, dict) or show.get("id") is None:
                continue
            results.append(ShowResult(
                id=int(show["id"]),
                name=show.get("name") or f"Show_{show['id']}",
                premiered=show.get("premiered"),
            ))

        logger.info(f"✓ {len(results)} TVMaze results for {query!r}")
        return results

    async def list_episodes(self, show_id: int) -> List[EpisodeInfo]:
        """
        Fetch all episodes of a show

        Args:
            show_id: TVMaze show ID

        Returns:
            Episodes with a season and number (specials without numbering are skipped)
        """
        logger.info(f"Fetching TVMaze episodes #{show_id}")
        data = await self._get_json(f"/shows/{show_id}/episodes")

        episodes = []
        skipped = 0
        for ep in data or []:
            if not isinstance(ep, dict):
                continue
            season = ep.get("season")
            number = ep.get("number")
            if ep.get("id") is None or season is None or number is None:
                skipped += 1
                continue
            episodes.append(EpisodeInfo(
                id=int(ep["id"]),
                season=int(season),
                number=int(number),
                title=ep.get("name") or "",
                airdate=ep.get("airdate") or None,
                airtime=ep.get("airtime") or None,
                airstamp=ep.get("airstamp") or None,
            ))

        logger.info(f"✓ Total: {len(episodes)} episodes ({skipped} without numbering skipped)")
        return episodes
