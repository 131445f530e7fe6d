import logging
from typing import Mapping

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError
from web3 import Web3

from .. import config
from ..errors import InvalidToken, Unauthorized

logger = logging.getLogger(__name__)


# --- Token Payload Model ---
class TokenData(BaseModel):
    sub: str  # Subject: the lowercased wallet address
    exp: int


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise Unauthorized("Access denied. No token provided.")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Access denied. No token provided.")
    return token.strip()


def decode_session_token(token: str) -> str:
    """Validates signature and expiry of a session token and returns its address."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
        token_data = TokenData(**payload)
    except JWTError as e:
        logger.warning(f"JWT Error during token decoding: {e}")
        raise InvalidToken("Invalid token.") from e
    except (ValidationError, TypeError) as e:
        logger.warning(f"JWT payload validation error: {e}")
        raise InvalidToken("Invalid token.") from e

    if not Web3.is_address(token_data.sub):
        logger.warning("Token subject is not a wallet address.")
        raise InvalidToken("Invalid token.")
    return token_data.sub.lower()


def authorize(headers: Mapping[str, str]) -> str:
    """Returns the wallet address bound to the request's bearer token."""
    authorization = next((value for key, value in headers.items() if key.lower() == "authorization"), None)
    return decode_session_token(extract_bearer_token(authorization))
