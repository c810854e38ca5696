from datetime import datetime

from pydantic import BaseModel, Field


class NonceRequest(BaseModel):
    """Request model for nonce generation - input validation"""

    address: str = Field(..., description="Ethereum wallet address")


class NonceResponse(BaseModel):
    """Response model for nonce generation - output"""

    success: bool = True
    address: str = Field(..., description="Checksummed wallet address")
    nonce: str = Field(..., description="Current single-use nonce")
    message: str = Field(..., description="Exact text the wallet must sign")


class VerifyRequest(BaseModel):
    """Request model for wallet verification - input validation"""

    address: str = Field(..., description="Ethereum wallet address")
    signature: str = Field(..., description="personal_sign signature of the challenge message")


class VerifyResponse(BaseModel):
    """Response model for authentication - output"""

    success: bool = True
    address: str
    authenticated_at: datetime


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
