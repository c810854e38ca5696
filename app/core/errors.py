"""
Error taxonomy for wallet authentication and the identity store.

Every failure the auth flow can produce is one of the closed set of kinds
below. Route handlers and the request gate switch on the kind, never on
driver-specific fields of a database error.

Auth kinds (all terminal and user-correctable, the client restarts the
challenge/sign/verify cycle):
- InvalidAddress: the address is not a valid 0x-prefixed hex address
- NotRegistered: no challenge was ever issued for the address
- MalformedSignature: the signature blob cannot be parsed or recovered
- Unauthorized: well-formed signature that does not match

Store kinds:
- DUPLICATE: a uniqueness constraint was violated
- UNAVAILABLE: the database could not be reached or the statement failed
"""

from enum import Enum

from fastapi import status


class AuthErrorKind(str, Enum):
    INVALID_ADDRESS = "InvalidAddress"
    NOT_REGISTERED = "NotRegistered"
    MALFORMED_SIGNATURE = "MalformedSignature"
    UNAUTHORIZED = "Unauthorized"


class AuthError(Exception):
    """Base class for auth failures. Subclasses pin the kind and defaults."""

    kind: AuthErrorKind = AuthErrorKind.UNAUTHORIZED
    status_code: int = status.HTTP_401_UNAUTHORIZED
    default_message: str = "Signature verification failed. Please reconnect your wallet."

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidAddressError(AuthError):
    kind = AuthErrorKind.INVALID_ADDRESS
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid Ethereum address."


class NotRegisteredError(AuthError):
    kind = AuthErrorKind.NOT_REGISTERED
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Address not registered. Call POST /api/auth/nonce first."


class MalformedSignatureError(AuthError):
    kind = AuthErrorKind.MALFORMED_SIGNATURE
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Malformed signature."


class UnauthorizedError(AuthError):
    kind = AuthErrorKind.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED


AUTH_ERRORS: dict[AuthErrorKind, type[AuthError]] = {
    AuthErrorKind.INVALID_ADDRESS: InvalidAddressError,
    AuthErrorKind.NOT_REGISTERED: NotRegisteredError,
    AuthErrorKind.MALFORMED_SIGNATURE: MalformedSignatureError,
    AuthErrorKind.UNAUTHORIZED: UnauthorizedError,
}


def auth_error_for(kind: AuthErrorKind, message: str | None = None, status_code: int | None = None) -> AuthError:
    """Build the exception instance for a kind."""
    return AUTH_ERRORS[kind](message, status_code)


class StoreErrorKind(str, Enum):
    DUPLICATE = "Duplicate"
    UNAVAILABLE = "StoreUnavailable"


class IdentityStoreError(Exception):
    """Data layer failure, tagged with a StoreErrorKind."""

    def __init__(self, kind: StoreErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    @property
    def status_code(self) -> int:
        if self.kind is StoreErrorKind.DUPLICATE:
            return status.HTTP_409_CONFLICT
        return status.HTTP_503_SERVICE_UNAVAILABLE
