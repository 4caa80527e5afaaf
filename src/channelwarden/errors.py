"""Exception hierarchy for channelwarden."""


class ChannelWardenError(Exception):
    """Base class for errors raised by channelwarden."""


class PersistenceError(ChannelWardenError):
    """A database write failed; the surrounding transaction was rolled back."""


class SessionError(ChannelWardenError):
    """A command session operation was not allowed in the current state."""


class StepValidationError(SessionError):
    """Raw operator input did not match the shape expected by the current step.

    Attributes:
        code: Machine-readable rejection code for the presentation layer.
    """

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code
