"""Tests for LDAP authentication and provisioning."""

from unittest.mock import MagicMock, patch

import pytest
from ldap3.core.exceptions import LDAPBindError, LDAPSocketOpenError

from src.api.dependencies import get_ldap_directory
from src.config import Settings
from src.main import app
from src.models.enums import UserRank
from src.models.user import UserVerification
from src.services.auth import create_registered_user
from src.services.ldap import (
    LdapAuthenticationError,
    LdapDirectory,
    LdapIdentity,
    authenticate_and_provision,
)


class FakeDirectory:
    """Directory accepting a single known account."""

    def __init__(self, identity: LdapIdentity, password: str) -> None:
        self.identity = identity
        self.password = password
        self.calls = []

    def authenticate(self, username: str, password: str) -> LdapIdentity:
        self.calls.append(username)
        if password != self.password:
            raise LdapAuthenticationError("invalid credentials")
        return self.identity


@pytest.fixture
def ldap_settings():
    return Settings(
        ldap_enabled=True,
        ldap_url="ldap://ldap.example.com",
        ldap_bindname="cn=service,dc=example,dc=com",
        ldap_bindpass="service-pass",  # noqa: S106
        ldap_basedn="dc=example,dc=com",
        ldap_filter="(mail=%s)",
    )


@pytest.fixture
def fake_directory():
    identity = LdapIdentity(
        dn="uid=ada,ou=people,dc=example,dc=com", email="ada@example.com", name="Ada Lovelace"
    )
    return FakeDirectory(identity, "engine-pass")


def _entry(dn: str, mail: str | list[str], cn: str | list[str]) -> MagicMock:
    attributes = {
        key: value if isinstance(value, list) else [value]
        for key, value in {"mail": mail, "cn": cn}.items()
    }
    entry = MagicMock()
    entry.entry_dn = dn
    entry.__getitem__.side_effect = lambda key: MagicMock(values=attributes[key])
    return entry


class TestLdapDirectory:
    """Tests for LdapDirectory against a mocked ldap3 connection."""

    def test_authenticate(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            conn = mock_conn_cls.return_value
            conn.entries = [_entry("uid=ada,dc=example,dc=com", "Ada@Example.com", "Ada")]

            identity = LdapDirectory(ldap_settings).authenticate("ada@example.com", "secret")

        assert identity == LdapIdentity(
            dn="uid=ada,dc=example,dc=com", email="ada@example.com", name="Ada"
        )
        conn.search.assert_called_once()
        assert conn.search.call_args.kwargs["search_filter"] == "(mail=ada@example.com)"
        conn.rebind.assert_any_call(
            user="cn=service,dc=example,dc=com", password="service-pass"  # noqa: S106
        )
        conn.rebind.assert_called_with(user="uid=ada,dc=example,dc=com", password="secret")
        conn.unbind.assert_called_once()

    def test_filter_is_escaped(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            conn = mock_conn_cls.return_value
            conn.entries = [_entry("uid=x,dc=example,dc=com", "x@example.com", "X")]

            LdapDirectory(ldap_settings).authenticate("*)(uid=*", "secret")

        assert conn.search.call_args.kwargs["search_filter"] == r"(mail=\2a\29\28uid=\2a)"

    def test_multi_valued_attributes_use_first_value(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            mock_conn_cls.return_value.entries = [
                _entry(
                    "uid=ada,dc=example,dc=com",
                    ["Ada@example.com", "a.lovelace@example.com"],
                    ["Ada Lovelace", "Countess of Lovelace"],
                )
            ]

            identity = LdapDirectory(ldap_settings).authenticate("ada@example.com", "secret")

        assert identity.email == "ada@example.com"
        assert identity.name == "Ada Lovelace"

    def test_missing_mail_value(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            conn = mock_conn_cls.return_value
            conn.entries = [_entry("uid=ada,dc=example,dc=com", [], "Ada")]

            with pytest.raises(LdapAuthenticationError):
                LdapDirectory(ldap_settings).authenticate("ada@example.com", "secret")
            conn.unbind.assert_called_once()

    def test_requires_exactly_one_entry(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            mock_conn_cls.return_value.entries = []

            with pytest.raises(LdapAuthenticationError):
                LdapDirectory(ldap_settings).authenticate("ada@example.com", "secret")

    def test_user_bind_failure(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            conn = mock_conn_cls.return_value
            conn.entries = [_entry("uid=ada,dc=example,dc=com", "ada@example.com", "Ada")]
            conn.rebind.side_effect = [True, LDAPBindError("invalidCredentials")]

            with pytest.raises(LdapAuthenticationError):
                LdapDirectory(ldap_settings).authenticate("ada@example.com", "wrong")
            conn.unbind.assert_called_once()

    def test_connection_failure(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            mock_conn_cls.return_value.open.side_effect = LDAPSocketOpenError("unreachable")

            with pytest.raises(LdapAuthenticationError):
                LdapDirectory(ldap_settings).authenticate("ada@example.com", "secret")

    def test_empty_password_rejected(self, ldap_settings):
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            with pytest.raises(LdapAuthenticationError):
                LdapDirectory(ldap_settings).authenticate("ada@example.com", "")
            mock_conn_cls.assert_not_called()

    def test_start_tls(self, ldap_settings):
        ldap_settings.ldap_use_tls = True
        with patch("src.services.ldap.Connection") as mock_conn_cls:
            conn = mock_conn_cls.return_value
            conn.entries = [_entry("uid=ada,dc=example,dc=com", "ada@example.com", "Ada")]

            LdapDirectory(ldap_settings).authenticate("ada@example.com", "secret")

        conn.start_tls.assert_called_once()


class TestProvisioning:
    """Tests for authenticate_and_provision."""

    def test_creates_verified_user_on_first_login(self, db, fake_directory):
        user = authenticate_and_provision(db, fake_directory, "ada@example.com", "engine-pass")

        assert user.email == "ada@example.com"
        assert user.name == "Ada Lovelace"
        assert user.rank == UserRank.REGISTERED
        assert user.verified is True
        assert user.password_hash is None
        assert db.query(UserVerification).count() == 0

    def test_reuses_existing_user(self, db, fake_directory):
        existing, _ = create_registered_user(db, "Ada", "ada@example.com", "localpass1")

        user = authenticate_and_provision(db, fake_directory, "ada@example.com", "engine-pass")

        assert user.id == existing.id

    def test_bad_password(self, db, fake_directory):
        with pytest.raises(LdapAuthenticationError):
            authenticate_and_provision(db, fake_directory, "ada@example.com", "wrong")


class TestLdapLoginEndpoint:
    """Tests for POST /api/auth/ldap."""

    @pytest.fixture(autouse=True)
    def use_fake_directory(self, client, settings, fake_directory):
        settings.ldap_enabled = True
        app.dependency_overrides[get_ldap_directory] = lambda: fake_directory

    def test_login(self, client, settings):
        response = client.post(
            "/api/auth/ldap",
            json={"warriorEmail": "ADA@example.com", "warriorPassword": "engine-pass"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["email"] == "ada@example.com"
        assert response.json()["data"]["verified"] is True
        assert settings.secure_cookie_name in client.cookies

    def test_login_passes_lowercased_username(self, client, fake_directory):
        client.post(
            "/api/auth/ldap",
            json={"warriorEmail": "ADA@example.com", "warriorPassword": "engine-pass"},
        )
        assert fake_directory.calls == ["ada@example.com"]

    def test_invalid_login(self, client):
        response = client.post(
            "/api/auth/ldap",
            json={"warriorEmail": "ada@example.com", "warriorPassword": "wrong"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_LOGIN"

    def test_disabled_without_ldap(self, client, settings):
        settings.ldap_enabled = False
        response = client.post(
            "/api/auth/ldap",
            json={"warriorEmail": "ada@example.com", "warriorPassword": "engine-pass"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "LDAP_AUTH_DISABLED"
