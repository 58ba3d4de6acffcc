"""
Exception hierarchy for the relay runtime.

Session-level operations raise these; relay handler boundaries catch,
log and carry on with the next message.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all warelay errors."""


# =============================
# Session / transport
# =============================

class SessionNotReadyError(RelayError):
    """The WhatsApp session is not in the Ready state."""

    def __init__(self, message: str = "WhatsApp client is not ready"):
        super().__init__(message)


class InvalidTargetError(RelayError):
    """A chat id or phone number could not be used as a send target."""


class BridgeError(RelayError):
    """The bridge rejected a request or the connection dropped mid-request."""


class BridgeTimeoutError(BridgeError):
    """The bridge did not answer a request in time."""


# =============================
# Media
# =============================

class MediaDownloadError(RelayError):
    """Media could not be fetched from a message or a URL."""


class TranscodeError(RelayError):
    """ffmpeg failed or produced an empty payload."""


# =============================
# Commands
# =============================

class CommandUsageError(RelayError):
    """
    Malformed command arguments.

    The message is shown to the command sender verbatim.
    """

    def __init__(self, usage: str):
        super().__init__(usage)
        self.usage = usage
