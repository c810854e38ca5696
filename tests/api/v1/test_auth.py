from unittest.mock import Mock

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from main import app
from app.core.dependencies import get_identity_store
from app.core.errors import IdentityStoreError, StoreErrorKind
from app.core.rate_limit import auth_rate_limiter
from app.core.wallet_auth import build_challenge
from app.services.identity_store import IdentityStore


class TestNonceAPI:
    """Test cases for POST /api/auth/nonce"""

    def test_request_nonce_success(self, client: TestClient, wallet):
        response = client.post("/api/auth/nonce", json={"address": wallet.address})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["address"] == wallet.address
        assert len(data["nonce"]) == 64
        assert data["message"] == build_challenge(wallet.address, data["nonce"])
        assert "will not trigger any blockchain transaction or cost any gas" in data["message"]

    def test_request_nonce_is_idempotent(self, client: TestClient, wallet):
        """Issuing twice without a login returns the same nonce"""
        first = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        second = client.post("/api/auth/nonce", json={"address": wallet.address}).json()

        assert first["nonce"] == second["nonce"]
        assert first["message"] == second["message"]

    def test_request_nonce_lowercase_address(self, client: TestClient, wallet):
        """Lowercase and checksummed forms share one identity"""
        checksummed = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        lowered = client.post("/api/auth/nonce", json={"address": wallet.address.lower()}).json()

        assert lowered["address"] == wallet.address
        assert lowered["nonce"] == checksummed["nonce"]

    def test_request_nonce_unprefixed_address(self, client: TestClient, wallet):
        """The 0x prefix is optional, the response carries the checksummed form"""
        prefixed = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        response = client.post("/api/auth/nonce", json={"address": wallet.address[2:]})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["address"] == wallet.address
        assert response.json()["nonce"] == prefixed["nonce"]

    def test_request_nonce_padded_address(self, client: TestClient, wallet):
        response = client.post("/api/auth/nonce", json={"address": f" {wallet.address} "})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "InvalidAddress"

    def test_request_nonce_invalid_address(self, client: TestClient):
        response = client.post("/api/auth/nonce", json={"address": "0x1234"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "success": False,
            "error": "Invalid Ethereum address.",
            "code": "InvalidAddress",
        }

    def test_request_nonce_bad_checksum(self, client: TestClient):
        response = client.post(
            "/api/auth/nonce",
            json={"address": "0x5aaeb6053F3E94C9b9A09f33669435E7Ef1BeAed"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "InvalidAddress"

    def test_request_nonce_missing_address(self, client: TestClient):
        response = client.post("/api/auth/nonce", json={})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "ValidationError"
        assert "address" in data["error"]


class TestVerifyAPI:
    """Test cases for POST /api/auth/verify"""

    def test_verify_success_rotates_nonce(self, client: TestClient, wallet, sign_message):
        challenge = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        signature = sign_message(wallet, challenge["message"])

        response = client.post(
            "/api/auth/verify",
            json={"address": wallet.address, "signature": signature},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["address"] == wallet.address
        assert data["authenticated_at"]

        after = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        assert after["nonce"] != challenge["nonce"]

    def test_verify_same_signature_twice_fails(self, client: TestClient, wallet, sign_message):
        """A signed challenge can only complete one login"""
        challenge = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        signature = sign_message(wallet, challenge["message"])
        body = {"address": wallet.address, "signature": signature}

        assert client.post("/api/auth/verify", json=body).status_code == status.HTTP_200_OK
        replay = client.post("/api/auth/verify", json=body)

        assert replay.status_code == status.HTTP_401_UNAUTHORIZED
        assert replay.json()["code"] == "Unauthorized"

    def test_verify_not_registered(self, client: TestClient, wallet, sign_message):
        signature = sign_message(wallet, "anything")

        response = client.post(
            "/api/auth/verify",
            json={"address": wallet.address, "signature": signature},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "NotRegistered"

    def test_verify_malformed_signature(self, client: TestClient, wallet):
        client.post("/api/auth/nonce", json={"address": wallet.address})

        response = client.post(
            "/api/auth/verify",
            json={"address": wallet.address, "signature": "0xnot-a-signature"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False,
            "error": "Malformed signature.",
            "code": "MalformedSignature",
        }

    def test_verify_signature_from_other_wallet(
        self, client: TestClient, wallet, other_wallet, sign_message
    ):
        """Recoverable but mismatched signature is Unauthorized, not Malformed"""
        challenge = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        signature = sign_message(other_wallet, challenge["message"])

        response = client.post(
            "/api/auth/verify",
            json={"address": wallet.address, "signature": signature},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False,
            "error": "Signature does not match the provided address.",
            "code": "Unauthorized",
        }

    def test_verify_invalid_address(self, client: TestClient):
        response = client.post(
            "/api/auth/verify",
            json={"address": "not-an-address", "signature": "0x00"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "InvalidAddress"

    def test_verify_lowercase_address(self, client: TestClient, wallet, sign_message):
        challenge = client.post("/api/auth/nonce", json={"address": wallet.address}).json()
        signature = sign_message(wallet, challenge["message"])

        response = client.post(
            "/api/auth/verify",
            json={"address": wallet.address.lower(), "signature": signature},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["address"] == wallet.address


class TestAuthRateLimit:
    """Auth routes are limited per client IP"""

    def test_too_many_requests(self, client: TestClient, wallet, monkeypatch):
        monkeypatch.setattr(auth_rate_limiter, "limit", 2)
        monkeypatch.setattr(auth_rate_limiter, "window_seconds", 3600)

        for _ in range(2):
            response = client.post("/api/auth/nonce", json={"address": wallet.address})
            assert response.status_code == status.HTTP_200_OK

        response = client.post("/api/auth/nonce", json={"address": wallet.address})

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["code"] == "RateLimited"
        assert int(response.headers["Retry-After"]) >= 1

    def test_limit_is_shared_by_nonce_and_verify(self, client: TestClient, wallet, monkeypatch):
        monkeypatch.setattr(auth_rate_limiter, "limit", 1)
        monkeypatch.setattr(auth_rate_limiter, "window_seconds", 3600)

        client.post("/api/auth/nonce", json={"address": wallet.address})
        response = client.post(
            "/api/auth/verify",
            json={"address": wallet.address, "signature": "0x00"},
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS


class TestStoreErrorResponses:
    """Data layer failures render in the common error body"""

    def test_store_unavailable(self, client: TestClient, wallet):
        db = Mock(spec=Session)
        db.execute.side_effect = OperationalError(
            "SELECT", {}, Exception("password authentication failed for user docs")
        )
        app.dependency_overrides[get_identity_store] = lambda: IdentityStore(db)

        response = client.post("/api/auth/nonce", json={"address": wallet.address})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json() == {
            "success": False,
            "error": "Identity store is temporarily unavailable.",
            "code": "StoreUnavailable",
        }
        assert "password" not in response.text

    def test_store_duplicate(self, client: TestClient, wallet):
        store = Mock(spec=IdentityStore)
        store.get_or_create.side_effect = IdentityStoreError(
            StoreErrorKind.DUPLICATE, "Identity could not be created."
        )
        app.dependency_overrides[get_identity_store] = lambda: store

        response = client.post("/api/auth/nonce", json={"address": wallet.address})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json() == {
            "success": False,
            "error": "Identity could not be created.",
            "code": "Duplicate",
        }

    def test_store_unavailable_on_protected_route(self, client: TestClient, wallet):
        db = Mock(spec=Session)
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        app.dependency_overrides[get_identity_store] = lambda: IdentityStore(db)

        response = client.get(
            "/api/user/me",
            headers={"x-wallet-address": wallet.address, "x-wallet-signature": "0xsig"},
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["code"] == "StoreUnavailable"
