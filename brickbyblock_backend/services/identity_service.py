import logging
import secrets
from datetime import datetime, timedelta, timezone

from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes
from jose import jwt
from web3 import Web3

from .. import config
from ..errors import InvalidInput, NoPendingChallenge, SignatureMismatch
from ..nonce_store import NonceStore

logger = logging.getLogger(__name__)

CHALLENGE_TEMPLATE = "Welcome to BrickByBlock!\n\nPlease sign this message to authenticate.\n\nNonce: {nonce}"


def normalize_address(address: str | None) -> str:
    """Validates a wallet address and returns it lowercased."""
    if not address or not isinstance(address, str) or not Web3.is_address(address.strip()):
        raise InvalidInput("A valid wallet address is required.")
    return address.strip().lower()


def generate_nonce() -> str:
    return secrets.token_hex(32)


def build_challenge_message(nonce: str) -> str:
    return CHALLENGE_TEMPLATE.format(nonce=nonce)


def recover_signer(message: str, signature: str) -> str:
    """Recovers the personal_sign (EIP-191) signer of a text message."""
    return Account.recover_message(encode_defunct(text=message), signature=HexBytes(signature))


def create_access_token(address: str, expires_delta: timedelta | None = None) -> str:
    """Creates a JWT access token bound to a wallet address."""
    if not config.JWT_SECRET_KEY:
        logger.error("Missing JWT_SECRET_KEY configuration.")
        raise RuntimeError("JWT_SECRET_KEY is not configured.")
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": address, "address": address, "exp": expire}
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


class IdentityBroker:
    """Challenge-response wallet login: one pending nonce per address."""

    def __init__(self, nonce_store: NonceStore):
        self.nonce_store = nonce_store

    def request_challenge(self, address: str | None) -> str:
        wallet = normalize_address(address)
        removed = self.nonce_store.cleanup_expired()
        if removed:
            logger.debug(f"Cleaned up {removed} expired challenges")
        nonce = generate_nonce()
        # Replaces any challenge still pending for this address
        self.nonce_store.put(wallet, nonce)
        logger.info(f"Issued challenge for {wallet}")
        return build_challenge_message(nonce)

    def verify(self, address: str | None, signature: str | None) -> str:
        wallet = normalize_address(address)

        nonce = self.nonce_store.get(wallet)
        if not nonce:
            logger.warning(f"Verification attempted without a pending challenge: {wallet}")
            raise NoPendingChallenge("No pending auth request, or session expired.")

        message = build_challenge_message(nonce)
        if not signature or not isinstance(signature, str):
            raise SignatureMismatch("Signature verification failed.")
        try:
            recovered = recover_signer(message, signature)
        except Exception as e:
            logger.warning(f"Could not recover signer for {wallet}: {e}")
            raise SignatureMismatch("Signature verification failed.") from e

        if recovered.lower() != wallet:
            logger.warning(f"Signature mismatch for {wallet}: recovered {recovered}")
            raise SignatureMismatch("Signature verification failed.")

        # Only consume the nonce that was actually verified; a re-issued one stays pending
        if not self.nonce_store.consume_if_matches(wallet, nonce):
            logger.warning(f"Challenge for {wallet} was replaced during verification")
            raise NoPendingChallenge("No pending auth request, or session expired.")

        token = create_access_token(wallet)
        logger.info(f"JWT generated successfully for address: {wallet}")
        return token
