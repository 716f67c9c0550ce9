"""Analytics error taxonomy."""


class AnalyticsError(Exception):
    """Base analytics error."""

    def __init__(self, message: str, code: str = "analytics_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidHeartbeatError(AnalyticsError):
    """Malformed heartbeat payload."""

    def __init__(self, message: str = "Invalid payload"):
        super().__init__(message, "invalid_payload")


class InvalidFilterError(AnalyticsError):
    """Dashboard filter is not a user id."""

    def __init__(self, message: str = "Invalid userId filter"):
        super().__init__(message, "invalid_payload")


class AudioNotFoundError(AnalyticsError):
    """Heartbeat or favorite refers to an unknown audio."""

    def __init__(self, message: str = "Audio not found"):
        super().__init__(message, "audio_not_found")


class StorageError(AnalyticsError):
    """Progress store or session log unavailable.

    Not retried here: the player sends its next heartbeat a few seconds later.
    """

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message, "storage_error")
