"""
Wallet login and request authorization.

- ChallengeIssuer: start login, returns the nonce and the text to sign
- WalletLogin: complete login, verifies the signature once and rotates
- RequestGate: authorizes every later request against the stored session

All three receive the IdentityStore through their constructor.
"""

import logging
from dataclasses import dataclass
from typing import Union

from app.core.errors import (
    AuthError,
    AuthErrorKind,
    MalformedSignatureError,
    NotRegisteredError,
    UnauthorizedError,
)
from app.core.wallet_auth import (
    build_challenge,
    normalize_address,
    recover_signer,
    signer_matches,
)
from app.models.auth import Identity
from app.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Challenge:
    address: str
    nonce: str
    message: str


@dataclass(frozen=True)
class Authorized:
    address: str


@dataclass(frozen=True)
class Denied:
    kind: AuthErrorKind
    message: str


AuthResult = Union[Authorized, Denied]


class ChallengeIssuer:
    def __init__(self, store: IdentityStore):
        self.store = store

    def issue(self, raw_address: str) -> Challenge:
        """
        Return the current nonce and challenge text for an address.

        Creates the identity on first request. Repeated calls return the
        same nonce until a login consumes it.

        Raises:
            InvalidAddressError: If the address is malformed
        """
        address = normalize_address(raw_address)
        identity = self.store.get_or_create(address)
        return Challenge(
            address=address,
            nonce=identity.nonce,
            message=build_challenge(address, identity.nonce),
        )


class WalletLogin:
    def __init__(self, store: IdentityStore):
        self.store = store

    def complete(self, raw_address: str, signature: str) -> Identity:
        """
        Verify a signed challenge and establish the session.

        On success the nonce is rotated and `signature` becomes the session
        signature, which replaces (and so invalidates) any previous one.

        Raises:
            InvalidAddressError: Malformed address
            NotRegisteredError: No challenge was issued for the address
            MalformedSignatureError: Signature cannot be recovered
            UnauthorizedError: Signature recovered to a different address
        """
        address = normalize_address(raw_address)
        identity = self.store.get(address)
        if identity is None:
            raise NotRegisteredError()

        challenge = build_challenge(address, identity.nonce)
        recovered = recover_signer(challenge, signature)
        if not signer_matches(address, recovered):
            logger.warning("login rejected for %s: signer mismatch", address)
            raise UnauthorizedError("Signature does not match the provided address.")

        identity = self.store.rotate(address, signature)
        logger.info(
            "verified %s at %s", address, identity.last_authenticated_at.isoformat()
        )
        return identity


class RequestGate:
    """
    Authorize a request carrying (address, signature).

    Primary check: exact match against the stored session signature.
    Fallback check: recover against the identity's current nonce. This
    covers a request signed before the login's nonce rotation was stored.
    It is a compatibility workaround, it never writes to the store, and
    it can be disabled with `nonce_fallback=False`.
    """

    def __init__(self, store: IdentityStore, nonce_fallback: bool = True):
        self.store = store
        self.nonce_fallback = nonce_fallback

    def authorize(self, raw_address: str, signature: str) -> AuthResult:
        try:
            address = normalize_address(raw_address)
        except AuthError as e:
            return Denied(e.kind, e.message)

        identity = self.store.get(address)
        if identity is None:
            return Denied(AuthErrorKind.NOT_REGISTERED, NotRegisteredError.default_message)

        if identity.session_signature and identity.session_signature == signature:
            return Authorized(address)

        if self.nonce_fallback and self._matches_current_nonce(identity, signature):
            logger.info("authorized %s through current-nonce fallback", address)
            return Authorized(address)

        logger.warning("request denied for %s: signature mismatch", address)
        return Denied(AuthErrorKind.UNAUTHORIZED, UnauthorizedError.default_message)

    @staticmethod
    def _matches_current_nonce(identity: Identity, signature: str) -> bool:
        challenge = build_challenge(identity.address, identity.nonce)
        try:
            recovered = recover_signer(challenge, signature)
        except MalformedSignatureError:
            return False
        return signer_matches(identity.address, recovered)
