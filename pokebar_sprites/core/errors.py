"""Domain-specific exceptions for sprite-sheet analysis."""


class InvalidBuffer(ValueError):
    """Raised when a pixel buffer is constructed from malformed arguments."""

    def __init__(self, field: str, reason: str | None = None):
        message = f"Invalid pixel buffer: {field}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.field = field


class OutOfBounds(IndexError):
    """Raised when a pixel outside the buffer is read."""

    def __init__(self, x: int, y: int, width: int, height: int):
        super().__init__(f"Pixel ({x}, {y}) outside {width}x{height} buffer")


class UnresolvedReference(LookupError):
    """Raised when an animation ``CopyOf`` chain has a missing target or a cycle."""


class ValidationError(ValueError):
    """Raised when user-provided settings fail validation."""


class ProcessingError(RuntimeError):
    """Raised when a sprite sheet cannot be loaded or processed."""
