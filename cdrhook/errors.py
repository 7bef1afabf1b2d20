# =====================================================================
# Error Types
# =====================================================================


class CdrHookError(Exception):
    """Base class for all cdrhook errors."""


class CdrError(CdrHookError):
    """The CDR attached to a hangup event could not be reconstructed."""


class TranscodeError(CdrHookError):
    """A recording could not be converted to the delivery format."""


class DeliveryError(CdrHookError):
    """The webhook did not accept the call record."""
