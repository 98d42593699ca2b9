"""
Episode Catalog

Persistent cache of provider episodes per show. Answers "episode N of
season S" and "next episode after (S, N)" using (season, number) order.
Methods flush but never commit; the caller owns the transaction.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from tvreminder.errors import EpisodeNotFoundError
from tvreminder.models.episode import CachedEpisode
from tvreminder.modules.sources.base import EpisodeInfo
from tvreminder.utils.timezone import parse_airstamp, utc_now


logger = logging.getLogger(__name__)


class EpisodeCatalog:
    def __init__(self, db: Session, provider: str = "tvmaze"):
        self.db = db
        self.provider = provider

    def _show_query(self, provider_show_id: str):
        return self.db.query(CachedEpisode).filter(
            CachedEpisode.provider == self.provider,
            CachedEpisode.provider_show_id == str(provider_show_id),
        )

    def upsert_episode(
        self,
        provider_show_id: str,
        provider_episode_id: str,
        season: int,
        number: int,
        title: str,
        airdate: Optional[str] = None,
        airtime: Optional[str] = None,
        aired_at_utc: Optional[datetime] = None,
    ) -> CachedEpisode:
        """Insert or update keyed by (provider, provider_episode_id); identity is preserved"""
        episode = self.db.query(CachedEpisode).filter(
            CachedEpisode.provider == self.provider,
            CachedEpisode.provider_episode_id == str(provider_episode_id),
        ).first()

        if episode is None:
            episode = CachedEpisode(
                provider=self.provider,
                provider_show_id=str(provider_show_id),
                provider_episode_id=str(provider_episode_id),
            )
            self.db.add(episode)

        episode.season = season
        episode.number = number
        episode.title = title
        episode.airdate = airdate
        episode.airtime = airtime
        episode.aired_at_utc = aired_at_utc
        episode.fetched_at = utc_now()

        self.db.flush()
        return episode

    def cache_show_episodes(self, provider_show_id: str, episodes: Iterable[EpisodeInfo]) -> int:
        """Upsert a full provider listing; returns how many episodes were stored"""
        count = 0
        for ep in episodes:
            self.upsert_episode(
                provider_show_id=provider_show_id,
                provider_episode_id=str(ep.id),
                season=ep.season,
                number=ep.number,
                title=ep.title,
                airdate=ep.airdate,
                airtime=ep.airtime,
                aired_at_utc=parse_airstamp(ep.airstamp),
            )
            count += 1

        logger.info(f"✓ Cached {count} episodes for {self.provider} show {provider_show_id}")
        return count

    def find_episode_by_number(self, provider_show_id: str, season: int, number: int) -> CachedEpisode:
        episode = self._show_query(provider_show_id).filter(
            CachedEpisode.season == season,
            CachedEpisode.number == number,
        ).first()

        if episode is None:
            raise EpisodeNotFoundError(
                f"episode S{season:02d}E{number:02d} of {self.provider} show {provider_show_id} not found"
            )
        return episode

    def find_next_episode(
        self,
        provider_show_id: str,
        last_season: Optional[int] = None,
        last_number: Optional[int] = None,
    ) -> Optional[CachedEpisode]:
        """
        First episode strictly after (last_season, last_number).

        No progress counts as (1, 0), so the first real episode is "next".
        Returns None when nothing follows.
        """
        if last_season is None or last_number is None:
            last_season, last_number = 1, 0

        return self._show_query(provider_show_id).filter(
            or_(
                CachedEpisode.season > last_season,
                and_(CachedEpisode.season == last_season, CachedEpisode.number > last_number),
            )
        ).order_by(CachedEpisode.season.asc(), CachedEpisode.number.asc()).first()

    def list_seasons(self, provider_show_id: str) -> List[int]:
        rows = self.db.query(CachedEpisode.season).filter(
            CachedEpisode.provider == self.provider,
            CachedEpisode.provider_show_id == str(provider_show_id),
            CachedEpisode.season.isnot(None),
        ).distinct().order_by(CachedEpisode.season.asc()).all()
        return [row[0] for row in rows]

    def list_episodes_by_season(self, provider_show_id: str, season: int) -> List[CachedEpisode]:
        return self._show_query(provider_show_id).filter(
            CachedEpisode.season == season,
        ).order_by(CachedEpisode.number.asc()).all()
