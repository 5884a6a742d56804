"""Error taxonomy of the messaging core.

Everything raised here is caught at the connection/event boundary by the
gateway and turned into a ``message_error`` for the originating connection.
"""


class ChatError(Exception):
    """Base class for messaging errors."""


class EventValidationError(ChatError):
    """A client event payload is malformed or misses a required field."""


class PersistenceError(ChatError):
    """Storage is unavailable or rejected the row (e.g. unknown user id)."""

