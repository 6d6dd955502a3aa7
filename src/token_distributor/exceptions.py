"""
Exception hierarchy for the token distributor.
"""

from typing import List, Optional


class TokenDistributorError(Exception):
    """Base class for all distributor errors."""


class ConfigError(TokenDistributorError, ValueError):
    """Raised when configuration is missing or invalid."""


class InvalidAmountFormat(TokenDistributorError, ValueError):
    """Raised when an amount string is not a plain positive decimal."""

    def __init__(self, value: object, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"Invalid amount format: {value}")


class TooManyDecimalPlaces(InvalidAmountFormat):
    """Raised when an amount has more fractional digits than the token supports."""

    def __init__(self, value: object, max_decimals: int):
        self.max_decimals = max_decimals
        super().__init__(
            value, f"Too many decimal places (max {max_decimals}): {value}")


class ValidationError(TokenDistributorError):
    """Raised when a CSV file cannot be validated at all."""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.details = details or []

    def __str__(self) -> str:
        if not self.details:
            return super().__str__()
        return f"{super().__str__()}: {'; '.join(self.details)}"


class TransferError(TokenDistributorError):
    """Raised by a chain client when a transfer is rejected or fails."""


class ConfirmationTimeout(TransferError):
    """Raised when a transfer does not reach the confirmation depth in time."""


class PersistenceError(TokenDistributorError):
    """Raised when resume data cannot be exported."""


class DistributorNotInitialized(TokenDistributorError, RuntimeError):
    """Raised when the distributor is used before connecting to the network."""

    def __init__(self, message: str = "Distributor not initialized. Call initialize() first."):
        super().__init__(message)
