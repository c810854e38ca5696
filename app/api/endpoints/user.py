from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.dependencies import get_identity_store, require_wallet
from app.schemas.auth import ErrorResponse
from app.schemas.user import ProfileResponse, UserProfile
from app.services.identity_store import IdentityStore

router = APIRouter()
group_tags: List[str] = ["user"]


@router.get(
    "/me",
    tags=group_tags,
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    responses={401: {"model": ErrorResponse}},
)
def get_me(
    wallet_address: str = Depends(require_wallet),
    store: IdentityStore = Depends(get_identity_store),
) -> ProfileResponse:
    """
    Get the authenticated wallet's profile.

    Headers:
    - x-wallet-address: wallet address
    - x-wallet-signature: signature returned at login
    """
    identity = store.get(wallet_address)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

    return ProfileResponse(
        user=UserProfile(
            address=identity.address,
            last_authenticated_at=identity.last_authenticated_at,
            created_at=identity.created_at,
        )
    )
