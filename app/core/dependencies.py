"""
FastAPI Authentication Dependencies
This module wires the wallet session services into route handlers.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(wallet_address: str = Depends(require_wallet)):
        # wallet_address is the checksummed address resolved by the gate
        return {"user": wallet_address}
Flow:
1. Client sends x-wallet-address and x-wallet-signature headers
2. FastAPI calls require_wallet() dependency
3. RequestGate.authorize() checks the stored session signature
   (falling back to the current nonce when enabled)
4. The address is attached to request.state and returned to the handler
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UnauthorizedError, auth_error_for
from app.db.session import get_db
from app.services.identity_store import IdentityStore
from app.services.wallet_session import (
    Authorized,
    ChallengeIssuer,
    RequestGate,
    WalletLogin,
)


def get_identity_store(db: Session = Depends(get_db)) -> IdentityStore:
    return IdentityStore(db, nonce_num_bytes=settings.NONCE_NUM_BYTES)


def get_challenge_issuer(store: IdentityStore = Depends(get_identity_store)) -> ChallengeIssuer:
    return ChallengeIssuer(store)


def get_wallet_login(store: IdentityStore = Depends(get_identity_store)) -> WalletLogin:
    return WalletLogin(store)


def get_request_gate(store: IdentityStore = Depends(get_identity_store)) -> RequestGate:
    return RequestGate(store, nonce_fallback=settings.AUTH_NONCE_FALLBACK_ENABLED)


def require_wallet(
    request: Request,
    wallet_address: Optional[str] = Header(None, alias="x-wallet-address"),
    wallet_signature: Optional[str] = Header(None, alias="x-wallet-signature"),
    gate: RequestGate = Depends(get_request_gate),
) -> str:
    """
    Authorize the request and return the checksummed wallet address.
    Raises:
        AuthError (401): missing headers or any gate denial
    """
    if not wallet_address or not wallet_signature:
        raise UnauthorizedError(
            "Missing auth headers (x-wallet-address, x-wallet-signature)."
        )

    result = gate.authorize(wallet_address, wallet_signature)
    if not isinstance(result, Authorized):
        # every denial is a 401 on protected routes, the code tag tells them apart
        raise auth_error_for(result.kind, result.message, status_code=401)

    request.state.wallet_address = result.address
    return result.address
