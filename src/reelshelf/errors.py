"""Exceptions shared across Reelshelf components."""


class ReelshelfError(Exception):
    """Base exception for catalog, enrichment, and session failures."""


class OperationCancelled(ReelshelfError):
    """Raised when a caller-supplied cancellation event was set mid-operation."""


class SessionError(ReelshelfError):
    """Raised when the automation session is used while it is not running."""


class DriverError(ReelshelfError):
    """Raised by browser drivers for fatal protocol or process failures."""


class ScanError(ReelshelfError):
    """Raised when a library scan could not be completed or saved."""


__all__ = ["ReelshelfError", "OperationCancelled", "SessionError", "DriverError", "ScanError"]
