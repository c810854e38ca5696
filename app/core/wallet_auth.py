"""
Ethereum Wallet Authentication Utilities

This module handles the Ethereum-specific cryptographic operations for wallet
authentication. It implements the personal-message signing flow (EIP-191), the
same scheme wallets such as MetaMask use for `personal_sign`.

Authentication Flow:
1. Backend generates a random nonce -> generate_nonce()
2. Backend builds the challenge text -> build_challenge()
3. Frontend signs the challenge with the wallet (personal_sign)
4. Backend recovers the signer -> recover_signer()
   - Rebuilds the EIP-191 signable message from the challenge text
   - Recovers the address from the 65-byte ECDSA signature
5. Caller compares the recovered address -> signer_matches()

Address handling uses eth_utils: every address is normalized to its
EIP-55 checksummed form before it touches the store.
"""

import re
import secrets

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import is_address, to_checksum_address

from app.core.errors import InvalidAddressError, MalformedSignatureError


NONCE_NUM_BYTES = 32  # 32 bytes = 64 hex characters

ADDRESS_PATTERN = re.compile(r"(0x)?[0-9a-fA-F]{40}")

CHALLENGE_TEMPLATE = (
    "Welcome to Blockchain Secure Docs!\n\n"
    "Sign this message to verify your wallet and authenticate.\n\n"
    "This request will not trigger any blockchain transaction or cost any gas.\n\n"
    "Wallet: {address}\n"
    "Nonce: {nonce}"
)


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for wallet authentication.

    Args:
        num_bytes: Number of random bytes to generate (default: 32 = 64 hex chars)

    Returns:
        Hex-encoded random string (e.g., "a1b2c3d4...")
    """
    return secrets.token_hex(num_bytes)


def normalize_address(raw_address: str | None) -> str:
    """
    Validate a wallet address and return its EIP-55 checksummed form.

    The `0x` prefix is optional. Lowercase, uppercase and correctly
    checksummed inputs all map to the same value. A mixed-case input with a
    wrong checksum is rejected, as is anything with surrounding whitespace.

    Raises:
        InvalidAddressError: If the value is not a 20-byte hex address
    """
    if not isinstance(raw_address, str):
        raise InvalidAddressError()
    if not ADDRESS_PATTERN.fullmatch(raw_address):
        raise InvalidAddressError()
    candidate = raw_address if raw_address.startswith("0x") else "0x" + raw_address
    if not is_address(candidate):
        raise InvalidAddressError()
    return to_checksum_address(candidate)


def build_challenge(address: str, nonce: str) -> str:
    """Build the exact text the wallet must sign for this address and nonce."""
    return CHALLENGE_TEMPLATE.format(address=address, nonce=nonce)


def recover_signer(message: str, signature: str) -> str:
    """
    Recover the address that produced `signature` over `message`.

    Args:
        message: The challenge text that was signed
        signature: Hex encoded 65-byte signature (with or without 0x prefix)

    Returns:
        Checksummed signer address

    Raises:
        MalformedSignatureError: If the signature cannot be decoded or recovered
    """
    if not isinstance(signature, str) or not signature.strip():
        raise MalformedSignatureError()
    signable = encode_defunct(text=message)
    try:
        return Account.recover_message(signable, signature=signature.strip())
    except (ValueError, TypeError, ValidationError, BadSignature) as e:
        # bad hex, bad length and bad v/r/s surface through different types
        raise MalformedSignatureError() from e


def signer_matches(address: str, recovered: str) -> bool:
    """Addresses may differ only in letter case."""
    return address.lower() == recovered.lower()
