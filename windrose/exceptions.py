"""Exceptions raised by the wind rose core."""


class WindRoseError(Exception):
    """Base class for wind rose errors."""


class HistoryFormatError(WindRoseError, ValueError):
    """A bulk history payload is malformed or inconsistent with the rose."""


class RoseConsistencyError(WindRoseError, RuntimeError):
    """The bucket grid no longer agrees with the reading queue.

    This always indicates a classification or eviction bug and is never
    recoverable.
    """


class BandsNotResolvedError(WindRoseError, LookupError):
    """A non-calm reading arrived before speed bands could be discovered."""


class PreloadInProgressError(WindRoseError, RuntimeError):
    """A bulk preload was requested while another one is still running."""
