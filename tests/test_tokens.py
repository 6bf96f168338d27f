import pytest
from fastapi import status
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from services.exceptions import TokenCreationError
from services.token_maker import JWTMaker


def login(client, username):
    response = client.post("/users/login", json={"username": username, "password": "secret123"})
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def block_session(store, session_id):
    with store.queries() as q:
        q.get_session(session_id).is_blocked = True


class TestRenewAccessToken:
    """Test the access token renewal endpoint."""

    def test_renew_access_token(self, client, create_user, token_maker):
        """Test renewing with a fresh refresh token."""
        user = create_user()
        tokens = login(client, user.username)

        response = client.post("/tokens/renew_access", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == status.HTTP_200_OK

        data = response.json()
        payload = token_maker.verify_token(data["access_token"])
        assert payload.username == user.username
        assert data["access_token_expires_at"] == payload.expired_at.isoformat().replace("+00:00", "Z")

    def test_renewed_token_authorises_transfers(self, client, create_user, create_account):
        """Test the renewed access token is accepted as a bearer token."""
        user = create_user()
        from_account = create_account(owner=user.username, balance=100)
        to_account = create_account(balance=0)
        tokens = login(client, user.username)
        renewed = client.post(
            "/tokens/renew_access", json={"refresh_token": tokens["refresh_token"]}
        ).json()

        response = client.post("/transfers/immediate", json={
            "from_account_id": from_account.id,
            "to_account_id": to_account.id,
            "amount": 40,
            "currency": "USD"
        }, headers={"Authorization": f"Bearer {renewed['access_token']}"})
        assert response.status_code == status.HTTP_200_OK

    def test_renew_missing_refresh_token(self, client):
        """Test a malformed request body."""
        response = client.post("/tokens/renew_access", json={})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_renew_forged_token(self, client, create_user):
        """Test a token signed with another key."""
        user = create_user()
        forged, _ = JWTMaker("f" * 32).create_token(user.username, timedelta(hours=1))

        response = client.post("/tokens/renew_access", json={"refresh_token": forged})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_renew_unknown_session(self, client, create_user, token_maker):
        """Test a valid token without a stored session."""
        user = create_user()
        token, _ = token_maker.create_token(user.username, timedelta(hours=1))

        response = client.post("/tokens/renew_access", json={"refresh_token": token})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_renew_expired_token(self, client, create_user, token_maker):
        """Test an expired refresh token."""
        user = create_user()
        token, _ = token_maker.create_token(user.username, -timedelta(minutes=1))

        response = client.post("/tokens/renew_access", json={"refresh_token": token})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_renew_blocked_session(self, client, create_user, store):
        """Test a refresh token whose session was blocked."""
        user = create_user()
        tokens = login(client, user.username)
        block_session(store, tokens["session_id"])

        response = client.post("/tokens/renew_access", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "blocked session"
        assert "access_token" not in response.json()

    def test_renew_force_expired_session(self, client, create_user, store):
        """Test a session expired by an operator before its token."""
        user = create_user()
        tokens = login(client, user.username)
        with store.queries() as q:
            q.get_session(tokens["session_id"]).expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        response = client.post("/tokens/renew_access", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "expired session"

    def test_renew_creation_failure(self, client, create_user, token_maker):
        """Test a signing failure while issuing the new access token."""
        user = create_user()
        tokens = login(client, user.username)

        with patch.object(token_maker, "create_token", side_effect=TokenCreationError("boom")):
            response = client.post("/tokens/renew_access", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "boom" not in response.json()["detail"]
