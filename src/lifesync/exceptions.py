"""Exceptions shared by the polling adapters and the page cache."""


class RemoteFetchError(Exception):
    """A remote service returned something we could not use (transient)."""


class AuthenticationError(Exception):
    """Credentials for a remote service were rejected or cannot be obtained."""


class CacheEntryNotFound(KeyError):
    """Raised when invalidating a page cache key that is not cached."""
