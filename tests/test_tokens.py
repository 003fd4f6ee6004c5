"""Tests for the token manager."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from goog_auth.auth.models import Token
from goog_auth.auth.oauth import OAuthProvider, SCOPE_GMAIL_READONLY, SCOPE_OPENID
from goog_auth.auth.tokens import TokenManager
from goog_auth.storage.base import KEY_SCOPES, KEY_TOKEN
from goog_auth.storage.file_store import FileStore
from goog_auth.utils.errors import (
    KeyNotFoundError,
    ScopesNotSetError,
    StoreReadError,
    TokenNotFoundError,
    TokenRefreshError,
)


@pytest.fixture(params=["file", "keyring"])
def manager(request, file_store, keyring_store, settings) -> TokenManager:
    """Fixture providing a TokenManager over each store backend."""
    store = file_store if request.param == "file" else keyring_store
    return TokenManager(store, settings)


class TestTokenModel:
    """Tests for Token validity rules."""

    def test_token_without_expiry_is_valid(self) -> None:
        """A token with no expiry never expires."""
        assert Token(access_token="a").valid

    def test_token_inside_skew_window_is_expired(self) -> None:
        """Tokens within 10 seconds of expiry are treated as expired."""
        token = Token(access_token="a", expiry=datetime.now(UTC) + timedelta(seconds=5))
        assert token.expired
        assert not token.valid

    def test_empty_access_token_is_invalid(self) -> None:
        """An empty access token is never valid."""
        assert not Token(access_token="").valid

    def test_naive_expiry_is_treated_as_utc(self) -> None:
        """Naive datetimes should be interpreted as UTC."""
        naive = datetime(2030, 1, 1, 12, 0, 0)
        assert Token(access_token="a", expiry=naive).expiry == naive.replace(tzinfo=UTC)


class TestTokenPersistence:
    """Tests for save/load/delete."""

    def test_save_then_load(self, manager: TokenManager, valid_token: Token) -> None:
        """A saved token should load back unchanged."""
        manager.save_token("work", valid_token)
        assert manager.load_token("work") == valid_token

    def test_load_missing_raises_token_not_found(self, manager: TokenManager) -> None:
        """Loading an unknown account should raise TokenNotFoundError."""
        with pytest.raises(TokenNotFoundError) as exc_info:
            manager.load_token("nobody")
        assert isinstance(exc_info.value, KeyNotFoundError)

    def test_token_stored_as_json(self, manager: TokenManager, valid_token: Token) -> None:
        """The stored record should be the token's JSON form."""
        manager.save_token("work", valid_token)
        record = json.loads(manager.store.get("work", KEY_TOKEN))
        assert record["access_token"] == "mock-access-token"
        assert record["refresh_token"] == "mock-refresh-token"

    def test_delete_removes_token_and_scopes(
        self, manager: TokenManager, valid_token: Token
    ) -> None:
        """delete_token should clear both records."""
        manager.save_token("work", valid_token)
        manager.save_scopes("work", [SCOPE_OPENID])

        manager.delete_token("work")

        with pytest.raises(TokenNotFoundError):
            manager.load_token("work")
        with pytest.raises(ScopesNotSetError):
            manager.get_granted_scopes("work")
        assert manager.store.list("work") == []

    def test_delete_missing_is_idempotent(self, manager: TokenManager) -> None:
        """Deleting an account with nothing stored should not raise."""
        manager.delete_token("nobody")
        manager.delete_token("nobody")

    def test_corrupted_token_record_raises_store_read_error(
        self, manager: TokenManager
    ) -> None:
        """A stored record that is not a token is unreadable, not missing."""
        manager.store.set("work", KEY_TOKEN, b"not json")
        with pytest.raises(StoreReadError):
            manager.load_token("work")

    def test_unreadable_file_propagates(self, tmp_path, settings) -> None:
        """A corrupted credential file must not look like a missing token."""
        store = FileStore(tmp_path)
        manager = TokenManager(store, settings)
        manager.save_token("work", Token(access_token="a"))
        store.token_path("work").write_bytes(b"\x01\x02corrupt")

        with pytest.raises(StoreReadError):
            manager.load_token("work")
        with pytest.raises(StoreReadError):
            manager.get_token_info("work")


class TestScopes:
    """Tests for granted scope tracking."""

    def test_save_then_get_preserves_order(self, manager: TokenManager) -> None:
        """Scopes should come back in the order they were saved."""
        scopes = [SCOPE_OPENID, SCOPE_GMAIL_READONLY]
        manager.save_scopes("work", scopes)
        assert manager.get_granted_scopes("work") == scopes

    def test_get_missing_raises_scopes_not_set(self, manager: TokenManager) -> None:
        """Unknown scopes should raise ScopesNotSetError."""
        with pytest.raises(ScopesNotSetError):
            manager.get_granted_scopes("work")

    def test_token_can_exist_without_scopes(
        self, manager: TokenManager, valid_token: Token
    ) -> None:
        """Scopes are stored independently of the token."""
        manager.save_token("work", valid_token)
        with pytest.raises(ScopesNotSetError):
            manager.get_granted_scopes("work")

    def test_has_scope(self, manager: TokenManager) -> None:
        """has_scope should report membership and be False when unknown."""
        assert not manager.has_scope("work", SCOPE_OPENID)

        manager.save_scopes("work", [SCOPE_OPENID])
        assert manager.has_scope("work", SCOPE_OPENID)
        assert not manager.has_scope("work", SCOPE_GMAIL_READONLY)

    def test_corrupted_scopes_raise_store_read_error(
        self, manager: TokenManager
    ) -> None:
        """A scopes record that is not a list of strings is unreadable."""
        manager.store.set("work", KEY_SCOPES, b'{"not": "a list"}')
        with pytest.raises(StoreReadError):
            manager.get_granted_scopes("work")


class TestTokenInfo:
    """Tests for get_token_info."""

    def test_missing_account(self, manager: TokenManager) -> None:
        """An unknown account should report has_token=False, not raise."""
        info = manager.get_token_info("nobody")
        assert info.account == "nobody"
        assert not info.has_token
        assert info.scopes == []

    def test_valid_token(self, manager: TokenManager, valid_token: Token) -> None:
        """A stored valid token should be described."""
        manager.save_token("work", valid_token)
        manager.save_scopes("work", [SCOPE_OPENID])

        info = manager.get_token_info("work")
        assert info.has_token
        assert not info.is_expired
        assert info.scopes == [SCOPE_OPENID]
        assert info.token_type == "Bearer"
        assert info.expiry == valid_token.expiry

    def test_expired_token(self, manager: TokenManager, expired_token: Token) -> None:
        """An expired token should be flagged."""
        manager.save_token("work", expired_token)
        info = manager.get_token_info("work")
        assert info.has_token
        assert info.is_expired
        assert info.scopes == []


class TestRefresh:
    """Tests for refresh_token and get_token_source."""

    def test_refresh_expired_token_persists_new_token(
        self, file_store, endpoint_settings, token_endpoint, expired_token: Token
    ) -> None:
        """An expired token should be refreshed and saved back to the store."""
        manager = TokenManager(file_store, endpoint_settings)
        manager.save_token("work", expired_token)
        provider = OAuthProvider(settings=endpoint_settings)

        token = manager.refresh_token("work", provider)

        assert token.access_token == "new-access-token"
        assert token_endpoint.requests[0]["grant_type"] == "refresh_token"
        assert manager.load_token("work").access_token == "new-access-token"

    def test_refresh_valid_token_does_not_write(
        self, manager: TokenManager, endpoint_settings, token_endpoint, valid_token, mocker
    ) -> None:
        """A still-valid token should not hit the network or the store."""
        manager.save_token("work", valid_token)
        spy = mocker.spy(manager.store, "set")

        token = manager.refresh_token("work", OAuthProvider(settings=endpoint_settings))

        assert token == valid_token
        assert token_endpoint.requests == []
        spy.assert_not_called()

    def test_refresh_missing_token(self, manager: TokenManager, settings) -> None:
        """Refreshing an unknown account should raise TokenNotFoundError."""
        with pytest.raises(TokenNotFoundError):
            manager.refresh_token("nobody", OAuthProvider(settings=settings))

    def test_refresh_rejected_keeps_stored_token(
        self, manager: TokenManager, endpoint_settings, token_endpoint, expired_token
    ) -> None:
        """A revoked refresh token should raise and leave the store alone."""
        token_endpoint.respond_with(400, {"error": "invalid_grant"})
        manager.save_token("work", expired_token)

        with pytest.raises(TokenRefreshError):
            manager.refresh_token("work", OAuthProvider(settings=endpoint_settings))
        assert manager.load_token("work") == expired_token

    def test_get_token_source_uses_saved_scopes(
        self, file_store, endpoint_settings, token_endpoint, expired_token
    ) -> None:
        """The source should refresh with the manager's client settings."""
        manager = TokenManager(file_store, endpoint_settings)
        manager.save_token("work", expired_token)
        manager.save_scopes("work", [SCOPE_OPENID])

        token = manager.get_token_source("work").token()

        assert token.access_token == "new-access-token"
        form = token_endpoint.requests[0]
        assert form["grant_type"] == "refresh_token"
        assert form["client_id"] == endpoint_settings.client_id
        assert form.get("scope") == SCOPE_OPENID

    def test_get_token_source_without_scopes(
        self, manager: TokenManager, valid_token
    ) -> None:
        """A token without recorded scopes still yields a source."""
        manager.save_token("work", valid_token)
        assert manager.get_token_source("work").token() == valid_token

    def test_get_token_source_missing_token(self, manager: TokenManager) -> None:
        """Without a stored token there is no source."""
        with pytest.raises(TokenNotFoundError):
            manager.get_token_source("nobody")
