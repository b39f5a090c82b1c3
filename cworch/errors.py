"""Exceptions raised by the package."""


class CwOrchError(Exception):
    """Base class for every error raised while orchestrating contracts."""


class DaemonError(CwOrchError):
    """Raised when talking to, or building data for, a live node fails."""