from django.core.exceptions import ImproperlyConfigured


class MirrorError(Exception):
    """Base class for synchronization engine errors."""


class ConfigurationError(MirrorError, ImproperlyConfigured):
    """Required configuration is missing or malformed."""


class RemoteError(MirrorError):
    """A call to the remote store failed."""

    def __init__(self, message, status_code=None, url=None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class RemoteUnavailable(RemoteError):
    """Network failure or timeout. Safe to retry on the next pass."""


class RemoteRejected(RemoteError):
    """4xx response: bad credentials or a bad request. Not retried."""


class RemoteServerFault(RemoteError):
    """5xx response or an unusable response body."""


class LocalPersistenceError(MirrorError):
    """Writing to the local store failed."""


class InvalidPayload(MirrorError):
    """A remote payload could not be mapped to the local shape."""


class SyncAborted(MirrorError):
    """A page could not be fetched, so the pass stopped early.

    Records written before the failing page stay committed; ``stats`` holds
    the counts accumulated up to that point.
    """

    def __init__(self, page, stats, cause):
        super().__init__(f"Sync aborted on page {page}: {cause}")
        self.page = page
        self.stats = stats
        self.cause = cause

    @property
    def transient(self):
        return not isinstance(self.cause, RemoteRejected)
