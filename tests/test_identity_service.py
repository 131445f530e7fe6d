import re
from datetime import datetime, timezone

import pytest
from jose import jwt

from brickbyblock_backend import config
from brickbyblock_backend.errors import InvalidInput, NoPendingChallenge, SignatureMismatch
from brickbyblock_backend.nonce_store import NonceStore
from brickbyblock_backend.services.identity_service import (
    IdentityBroker,
    build_challenge_message,
    generate_nonce,
    recover_signer,
)
from conftest import sign_text, PRIVATE_KEY, OTHER_PRIVATE_KEY


class TestChallenge:
    def test_generate_nonce_is_32_bytes_hex(self):
        nonce = generate_nonce()
        assert re.fullmatch(r"[0-9a-f]{64}", nonce)
        assert nonce != generate_nonce()

    def test_message_embeds_nonce(self, broker, account):
        message = broker.request_challenge(account.address)
        assert message.startswith("Welcome to BrickByBlock!\n\nPlease sign this message to authenticate.")
        nonce = message.rsplit("Nonce: ", 1)[1]
        assert message == build_challenge_message(nonce)

    def test_challenge_stored_under_lowercased_address(self, account):
        store = NonceStore()
        broker = IdentityBroker(store)
        message = broker.request_challenge(account.address.upper().replace("0X", "0x"))
        assert store.get(account.address.lower()) == message.rsplit("Nonce: ", 1)[1]

    @pytest.mark.parametrize("address", [None, "", "0x123", "not-an-address"])
    def test_invalid_address_rejected(self, broker, address):
        with pytest.raises(InvalidInput):
            broker.request_challenge(address)


class TestVerify:
    def test_verify_without_challenge_fails(self, broker, account):
        with pytest.raises(NoPendingChallenge):
            broker.verify(account.address, "0x" + "00" * 65)

    def test_valid_signature_returns_token_once(self, broker, account):
        message = broker.request_challenge(account.address)
        signature = sign_text(message, PRIVATE_KEY)

        token = broker.verify(account.address, signature)
        payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
        assert payload["address"] == account.address.lower()
        assert payload["sub"] == account.address.lower()

        # The nonce is single use
        with pytest.raises(NoPendingChallenge):
            broker.verify(account.address, signature)

    def test_token_expires_after_one_day(self, broker, account):
        message = broker.request_challenge(account.address)
        token = broker.verify(account.address, sign_text(message, PRIVATE_KEY))
        payload = jwt.get_unverified_claims(token)
        remaining = payload["exp"] - datetime.now(timezone.utc).timestamp()
        assert 24 * 3600 - 60 < remaining <= 24 * 3600

    def test_signature_from_other_key_fails(self, broker, account):
        message = broker.request_challenge(account.address)
        with pytest.raises(SignatureMismatch):
            broker.verify(account.address, sign_text(message, OTHER_PRIVATE_KEY))

    def test_failed_verification_keeps_challenge_retryable(self, broker, account):
        message = broker.request_challenge(account.address)
        with pytest.raises(SignatureMismatch):
            broker.verify(account.address, sign_text(message, OTHER_PRIVATE_KEY))
        assert broker.verify(account.address, sign_text(message, PRIVATE_KEY))

    def test_address_comparison_is_case_insensitive(self, broker, account):
        message = broker.request_challenge(account.address.lower())
        assert broker.verify(account.address, sign_text(message, PRIVATE_KEY))

    def test_malformed_signature_is_a_mismatch(self, broker, account):
        broker.request_challenge(account.address)
        with pytest.raises(SignatureMismatch):
            broker.verify(account.address, "0xnothex")

    def test_new_challenge_invalidates_previous_one(self, broker, account):
        first = broker.request_challenge(account.address)
        second = broker.request_challenge(account.address)
        assert first != second

        with pytest.raises(SignatureMismatch):
            broker.verify(account.address, sign_text(first, PRIVATE_KEY))
        assert broker.verify(account.address, sign_text(second, PRIVATE_KEY))

    def test_expired_challenge_fails(self, account):
        now = [0.0]
        broker = IdentityBroker(NonceStore(ttl_seconds=300, clock=lambda: now[0]))
        message = broker.request_challenge(account.address)
        now[0] = 301.0
        with pytest.raises(NoPendingChallenge):
            broker.verify(account.address, sign_text(message, PRIVATE_KEY))

    def test_issuing_a_challenge_purges_stale_ones(self, account):
        now = [0.0]
        store = NonceStore(ttl_seconds=10, clock=lambda: now[0])
        broker = IdentityBroker(store)
        for i in range(50):
            broker.request_challenge("0x" + f"{i + 1:040x}")
        assert len(store) == 50

        now[0] = 1000.0
        broker.request_challenge(account.address)
        assert len(store) == 1
        assert store.get(account.address.lower()) is not None


def test_recover_signer_matches_account(account):
    signature = sign_text("Test message", PRIVATE_KEY)
    assert recover_signer("Test message", signature).lower() == account.address.lower()
