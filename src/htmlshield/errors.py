class ValidationError(ValueError):
    """Raised when input is rejected before sanitization (it exceeds the length cap)."""

    def __init__(self, length: int, max_length: int):
        self.length = length
        self.max_length = max_length
        super().__init__(f"Input length {length} exceeds the maximum of {max_length} characters")


class PolicyError(ValueError):
    """Raised when policy or settings data is invalid."""


class SanitizationError(RuntimeError):
    """Raised by the shield when sanitizing a value fails and the error mode is THROW_EXCEPTION."""
