from tvreminder.models.config import Config
from tvreminder.models.show import Show
from tvreminder.models.episode import CachedEpisode
from tvreminder.models.reminder import Reminder

__all__ = [
    "Config",
    "Show",
    "CachedEpisode",
    "Reminder",
]
