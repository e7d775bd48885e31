class NoteError(Exception):
    """Base class for every error raised by the note core."""


class StorageUnavailableError(NoteError):
    """The notes database could not be opened or written."""


class MalformedRecordError(NoteError):
    """A stored row cannot be decoded back into a NoteItem."""


class CapabilityUnavailableError(NoteError):
    """Microphone or speech engine is missing, denied or failed to start."""

    def __init__(self, capability: str, reason: str | None = None):
        self.capability = capability
        self.reason = reason
        message = f"Capacidad no disponible: {capability}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class SessionActiveError(NoteError):
    """A recording session is already running."""
