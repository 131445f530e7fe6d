# brickbyblock_backend/errors.py

from fastapi import status


class MarketplaceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "An internal error occurred."):
        super().__init__(message)
        self.message = message


# --- 400 ---
class InvalidInput(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationError(InvalidInput):
    """A mint request is missing one of its required fields."""


# --- 401 ---
class Unauthorized(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidToken(Unauthorized):
    pass


class NoPendingChallenge(Unauthorized):
    pass


class SignatureMismatch(Unauthorized):
    pass


# --- 500 ---
class ChainUnavailable(MarketplaceError):
    pass


class MetadataUnavailable(MarketplaceError):
    pass


class StorageUnavailable(MarketplaceError):
    pass
