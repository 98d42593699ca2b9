"""Exception hierarchy for tvreminder."""


class TVReminderError(Exception):
    """Base exception for all internal errors."""


# ── Storage ────────────────────────────────────────────────────────────
class DatabaseError(TVReminderError):
    """Raised when a store operation fails."""


class EpisodeNotFoundError(DatabaseError):
    """Raised when an episode is not in the cache."""


class ShowNotFoundError(DatabaseError):
    """Raised when a subscription does not exist."""


# ── Collaborators ──────────────────────────────────────────────────────
class SourceError(TVReminderError):
    """Raised when the show source (search / episode listing) fails."""


class SourceTimeoutError(SourceError):
    """Raised when the show source does not answer in time."""


class TransportError(TVReminderError):
    """Raised when the chat transport rejects a request."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def permanent(self) -> bool:
        """Client errors other than rate limiting will not succeed on retry"""
        return self.status_code is not None and 400 <= self.status_code < 500 and self.status_code != 429


# ── Conversation ───────────────────────────────────────────────────────
class SessionExpiredError(TVReminderError):
    """Raised when a handler expects a session that is missing or in another state."""


class InvalidCallbackError(TVReminderError):
    """Raised when button data cannot be decoded."""


class UserError(TVReminderError):
    """
    Pairs an internal cause with a short message safe to show in chat.

    Handlers raise it; the dispatcher is the only place that turns it into text.
    """

    def __init__(self, cause, user_msg: str):
        if isinstance(cause, str):
            cause = TVReminderError(cause)
        super().__init__(str(cause))
        self.cause = cause
        self.user_msg = user_msg
        self.__cause__ = cause


def get_user_message(err: BaseException) -> str:
    """Chat text for an error: the user message if there is one, else the error text"""
    current = err
    while current is not None:
        if isinstance(current, UserError):
            return current.user_msg
        current = current.__cause__
    return str(err)
