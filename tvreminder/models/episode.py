from sqlalchemy import Column, Integer, String, DateTime, Index, UniqueConstraint
from tvreminder.database import Base
from tvreminder.utils.timezone import utc_now


class CachedEpisode(Base):
    __tablename__ = "episodes_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)

    provider = Column(String, nullable=False)
    provider_show_id = Column(String, nullable=False)
    provider_episode_id = Column(String, nullable=False)

    season = Column(Integer)
    number = Column(Integer)
    title = Column(String)

    # As delivered by the provider
    airdate = Column(String, nullable=True)  # yyyy-mm-dd
    airtime = Column(String, nullable=True)  # hh:mm
    # Normalized naive UTC timestamp, if known
    aired_at_utc = Column(DateTime, nullable=True)

    fetched_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint('provider', 'provider_episode_id', name='uq_episode_provider'),
        Index('idx_episodes_show', 'provider', 'provider_show_id'),
    )

    def __repr__(self):
        return f"<CachedEpisode {self.provider_show_id} S{self.season:02d}E{self.number:02d}: {self.title}>"
