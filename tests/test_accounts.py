"""Tests for the account service."""

from __future__ import annotations

import pytest

from goog_auth.accounts import AccountService, LoginResult
from goog_auth.auth.flow import OAuthFlow
from goog_auth.auth.oauth import DEFAULT_SCOPES, SCOPE_DRIVE_READONLY
from goog_auth.utils.errors import OAuthError, TokenNotFoundError, ValidationError


@pytest.fixture
def flow(mocker, valid_token):
    """Fixture providing a flow that logs in user@example.com."""
    flow = mocker.MagicMock(spec=OAuthFlow)
    flow.run.return_value = ("user@example.com", valid_token)
    return flow


@pytest.fixture
def service(file_store, flow, settings) -> AccountService:
    """Fixture providing an AccountService over a file store."""
    return AccountService(file_store, flow=flow, settings=settings)


class TestLogin:
    """Tests for AccountService.login."""

    def test_login_saves_token_and_default_scopes(
        self, service: AccountService, flow, valid_token
    ) -> None:
        """Login should persist the token and the requested scopes."""
        result = service.login("work")

        assert result == LoginResult(
            account="work", email="user@example.com", scopes=DEFAULT_SCOPES
        )
        flow.run.assert_called_once_with(DEFAULT_SCOPES)
        assert service.tokens.load_token("work") == valid_token
        assert service.tokens.get_granted_scopes("work") == DEFAULT_SCOPES

    def test_login_with_custom_scopes(self, service: AccountService, flow) -> None:
        """Explicit scopes should be requested and recorded."""
        result = service.login("work", [SCOPE_DRIVE_READONLY])

        flow.run.assert_called_once_with([SCOPE_DRIVE_READONLY])
        assert result.scopes == [SCOPE_DRIVE_READONLY]
        assert service.tokens.has_scope("work", SCOPE_DRIVE_READONLY)

    def test_failed_login_stores_nothing(self, service: AccountService, flow) -> None:
        """A flow error should propagate without writing to the store."""
        flow.run.side_effect = OAuthError(
            "OAuth error: access_denied - ", error_code="access_denied"
        )

        with pytest.raises(OAuthError):
            service.login("work")
        assert service.tokens.store.list("work") == []

    def test_empty_account_rejected(self, service: AccountService, flow) -> None:
        """An empty account name is invalid."""
        with pytest.raises(ValidationError):
            service.login("")
        flow.run.assert_not_called()


class TestLogoutAndStatus:
    """Tests for logout, status and get_token_source."""

    def test_logout_removes_credentials(self, service: AccountService) -> None:
        """Logout should delete the token and report that it existed."""
        service.login("work")

        assert service.logout("work") is True
        assert not service.status("work").has_token
        assert service.tokens.store.list("work") == []

    def test_logout_clears_unreadable_credentials(
        self, service: AccountService, mocker, valid_token
    ) -> None:
        """Credentials that no longer decrypt can be logged out and replaced."""
        service.login("work")
        mocker.patch(
            "goog_auth.storage.file_store.machine_fingerprint",
            return_value="renamed-host:user:1000",
        )

        assert service.logout("work") is True
        assert service.tokens.store.list("work") == []

        service.login("work")
        assert service.tokens.load_token("work") == valid_token

    def test_logout_unknown_account(self, service: AccountService) -> None:
        """Logging out an account with nothing stored is not an error."""
        assert service.logout("nobody") is False

    def test_status_after_login(self, service: AccountService) -> None:
        """Status should describe the stored token."""
        service.login("work")

        info = service.status("work")
        assert info.account == "work"
        assert info.has_token
        assert not info.is_expired
        assert info.scopes == DEFAULT_SCOPES

    def test_get_token_source(self, service: AccountService, valid_token) -> None:
        """A logged-in account yields a working token source."""
        service.login("work")
        assert service.get_token_source("work").token() == valid_token

    def test_get_token_source_requires_login(self, service: AccountService) -> None:
        """Without a login there is no token source."""
        with pytest.raises(TokenNotFoundError):
            service.get_token_source("work")

    def test_default_flow_built_from_settings(self, file_store, settings) -> None:
        """Without an injected flow, one is built from the service settings."""
        service = AccountService(file_store, settings=settings)
        assert service.flow.provider.settings == settings
