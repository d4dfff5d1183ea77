from __future__ import annotations


class BabysitterError(Exception):
    """Base class for control-loop errors."""


class AuthError(BabysitterError):
    """Credential exchange with an external API failed."""


class FetchError(BabysitterError):
    """A reading or device state could not be retrieved."""


class CommandError(BabysitterError):
    """The device rejected a mutation."""


class NoValidReadings(BabysitterError):
    """Every sensor came back without a temperature this cycle."""
