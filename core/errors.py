"""Exceptions raised by the profile directory."""


class ProfileDirectoryError(Exception):
    """Base class for profile directory errors."""


class InvalidNickname(ProfileDirectoryError):
    """Nickname is shorter than the bucket width and cannot be indexed."""


class PrefixTooShort(ProfileDirectoryError):
    """Search prefix is shorter than the bucket width."""


class StoreError(ProfileDirectoryError):
    """Failure reported by the underlying content-addressable store."""
