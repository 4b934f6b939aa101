"""Exception taxonomy for mcdex."""

from __future__ import annotations


class McdexError(Exception):
    """Base class for every error reported to the command line."""


class DatabaseError(McdexError):
    pass


class ModNotFoundError(McdexError):
    pass


class PatternError(McdexError):
    """A name filter that is not a valid regular expression."""


class ModNotInPackError(McdexError):
    pass


class ManifestError(McdexError):
    pass


class CacheError(McdexError):
    pass


class NoModsFoundError(McdexError):
    pass


class RemovalError(McdexError):
    pass


class PartialRemovalError(RemovalError):
    """Some, but not all, entries were removed; the manifest was still saved."""
