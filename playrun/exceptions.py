"""Custom exception hierarchy for playrun."""


class PlayrunError(Exception):
    """Base for all playrun errors."""


class InvocationError(PlayrunError, ValueError):
    """A start request carried no program to run."""


class ProcessStateError(PlayrunError):
    """Invalid process state transition."""


class ChannelClosedError(PlayrunError):
    """Message sent on a channel that was already closed."""


class UnknownCommandError(PlayrunError):
    """Inbound message kind is not a command the session understands."""
