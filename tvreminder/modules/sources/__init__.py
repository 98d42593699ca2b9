from tvreminder.modules.sources.base import ShowSource, ShowResult, EpisodeInfo

__all__ = ["ShowSource", "ShowResult", "EpisodeInfo"]
