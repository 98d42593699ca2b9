from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from tvreminder.database import Base
from tvreminder.utils.timezone import utc_now


class Show(Base):
    """A user's tracked show (subscription)"""
    __tablename__ = "shows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    name = Column(String, nullable=False)

    provider = Column(String, nullable=False)  # "tvmaze"
    provider_show_id = Column(String, nullable=False)
    timezone = Column(String, default="UTC")

    last_watched_episode_id = Column(Integer, ForeignKey("episodes_cache.id"), nullable=True)
    notifications_enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utc_now)

    last_watched_episode = relationship("CachedEpisode", foreign_keys=[last_watched_episode_id])

    __table_args__ = (
        UniqueConstraint('user_id', 'provider', 'provider_show_id', name='uq_show_user_provider'),
    )

    def __repr__(self):
        return f"<Show {self.name} ({self.provider}: {self.provider_show_id}) user={self.user_id}>"
