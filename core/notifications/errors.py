"""Exceptions raised inside the reminder engine."""


class ChannelError(Exception):
    """Raised when a message could not be handed to a delivery channel."""

    pass


class TransientChannelError(ChannelError):
    """Raised for failures worth retrying: network errors, timeouts, rate limits, 5xx."""

    pass


class PermanentChannelError(ChannelError):
    """Raised for failures that will not succeed on retry: bad recipient, bad request, no credentials."""

    pass


class ContentGenerationError(Exception):
    """Raised when the AI provider fails, times out or returns nothing usable."""

    pass


class ConfigurationGap(Exception):
    """
    Names a missing participant preference.

    Never raised by the engine: a missing preference resolves to defaults.
    Kept so callers outside the engine can report the gap explicitly.
    """

    pass
