class SourceNotFound(Exception):
    """Error 404: The source extract does not exist."""


class SourceUnavailable(Exception):
    """Error 5xx: The source host could not serve the extract."""


class IndexAuthenticationError(Exception):
    """Error 401/403: The search index rejected the API key."""


class IndexRequestFailed(Exception):
    """The search index answered with an unexpected status."""


class IndexTaskTimeout(Exception):
    """The search index still had pending tasks after the last poll."""
