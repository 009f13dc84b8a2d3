"""Exception hierarchy for the serial terminal transport layer."""

from __future__ import annotations


class SerialTermError(Exception):
    """Base exception for all serial_term errors."""


class TransportError(SerialTermError):
    """Error in the transport layer. str(exc) is shown to the user as-is."""


class TransportOpenError(TransportError):
    """Device could not be opened (permission denied, busy, none selected)."""


class TransportReadError(TransportError):
    """Read failed during an active session."""


class TransportWriteError(TransportError):
    """Write failed during an active session."""


class TransportCloseError(TransportError):
    """Releasing the device failed. The session is treated as closed anyway."""


class ConfigError(SerialTermError):
    """A settings profile is missing or malformed."""
