from sqlalchemy import Column, Integer, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from tvreminder.database import Base


class Reminder(Base):
    """Pending notification, at most one per (user, show)"""
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False)
    show_id = Column(Integer, ForeignKey("shows.id"), nullable=False)
    episode_id = Column(Integer, ForeignKey("episodes_cache.id"), nullable=False)
    remind_at = Column(DateTime, nullable=False, index=True)
    chat_id = Column(BigInteger, nullable=False)

    show = relationship("Show")
    episode = relationship("CachedEpisode")

    __table_args__ = (
        UniqueConstraint('user_id', 'show_id', name='uq_reminder_user_show'),
    )

    def __repr__(self):
        return f"<Reminder show={self.show_id} episode={self.episode_id} at {self.remind_at}>"
