from typing import List

from fastapi import APIRouter, Depends, status

import app.schemas.auth as schemas
from app.core.dependencies import get_challenge_issuer, get_wallet_login
from app.core.rate_limit import limit_auth_requests
from app.services.wallet_session import ChallengeIssuer, WalletLogin

router = APIRouter(dependencies=[Depends(limit_auth_requests)])
group_tags: List[str] = ["Auth"]


@router.post(
    "/nonce",
    tags=group_tags,
    response_model=schemas.NonceResponse,
    status_code=status.HTTP_200_OK,
    responses={400: {"model": schemas.ErrorResponse}, 429: {"model": schemas.ErrorResponse}},
)
def request_nonce(
    body: schemas.NonceRequest,
    issuer: ChallengeIssuer = Depends(get_challenge_issuer),
) -> schemas.NonceResponse:
    """Return the sign-in nonce and the exact message to sign.

    The identity is created on first request. The nonce is NOT rotated
    here, repeated calls return the same value until a login succeeds.
    """
    challenge = issuer.issue(body.address)
    return schemas.NonceResponse(
        address=challenge.address,
        nonce=challenge.nonce,
        message=challenge.message,
    )


@router.post(
    "/verify",
    tags=group_tags,
    response_model=schemas.VerifyResponse,
    responses={
        400: {"model": schemas.ErrorResponse},
        401: {"model": schemas.ErrorResponse},
        404: {"model": schemas.ErrorResponse},
        429: {"model": schemas.ErrorResponse},
    },
)
def verify_wallet(
    body: schemas.VerifyRequest,
    login: WalletLogin = Depends(get_wallet_login),
) -> schemas.VerifyResponse:
    """Verify a signed challenge and start the wallet session.

    On success the nonce rotates and the submitted signature becomes the
    session signature sent on every later request.
    """
    identity = login.complete(body.address, body.signature)
    return schemas.VerifyResponse(
        address=identity.address,
        authenticated_at=identity.last_authenticated_at,
    )
