"""LDAP directory authentication with automatic account provisioning."""

import logging
import ssl
from dataclasses import dataclass

from ldap3 import SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars
from sqlalchemy.orm import Session

from src.config import Settings
from src.models.user import User
from src.services.auth import create_registered_user, get_user_by_email, verify_user_account

logger = logging.getLogger(__name__)


class LdapAuthenticationError(Exception):
    """Directory lookup or bind failed."""


def _first_value(entry, attribute: str) -> str:
    """Return the first value of a possibly multi-valued attribute."""
    values = entry[attribute].values
    if not values:
        raise LdapAuthenticationError(f"entry {entry.entry_dn} has no {attribute}")
    return str(values[0])


@dataclass
class LdapIdentity:
    """Attributes of an authenticated directory entry."""

    dn: str
    email: str
    name: str


class LdapDirectory:
    """Authenticates users against the configured LDAP server."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _connect(self) -> Connection:
        tls = Tls(validate=ssl.CERT_NONE) if self.settings.ldap_use_tls else None
        server = Server(self.settings.ldap_url, tls=tls)
        conn = Connection(server, raise_exceptions=True)
        conn.open()
        if self.settings.ldap_use_tls:
            conn.start_tls()
        return conn

    def authenticate(self, username: str, password: str) -> LdapIdentity:
        """Look up ``username`` in the directory and bind as it with ``password``."""
        if not password:
            # An empty password would be accepted as an anonymous bind
            raise LdapAuthenticationError("empty password")

        settings = self.settings
        try:
            conn = self._connect()
        except LDAPException as e:
            logger.error(f"Failed connecting to ldap server at {settings.ldap_url}: {e}")
            raise LdapAuthenticationError(str(e)) from e

        try:
            if settings.ldap_bindname:
                conn.rebind(user=settings.ldap_bindname, password=settings.ldap_bindpass)

            conn.search(
                search_base=settings.ldap_basedn,
                search_filter=settings.ldap_filter % escape_filter_chars(username),
                search_scope=SUBTREE,
                attributes=[settings.ldap_mail_attr, settings.ldap_cn_attr],
            )
            entries = conn.entries
            if len(entries) != 1:
                logger.warning(
                    f"User {username} does not exist or too many entries returned"
                )
                raise LdapAuthenticationError("user not found")

            entry = entries[0]
            identity = LdapIdentity(
                dn=entry.entry_dn,
                email=_first_value(entry, settings.ldap_mail_attr).lower(),
                name=_first_value(entry, settings.ldap_cn_attr),
            )

            conn.rebind(user=identity.dn, password=password)
        except LDAPException as e:
            logger.warning(f"Failed authenticating user {username}: {e}")
            raise LdapAuthenticationError(str(e)) from e
        finally:
            conn.unbind()

        return identity


def authenticate_and_provision(
    db: Session, directory: LdapDirectory, username: str, password: str
) -> User:
    """Authenticate through the directory, creating a verified account on first login."""
    identity = directory.authenticate(username, password)

    user = get_user_by_email(db, identity.email)
    if user is None:
        logger.info(f"User {identity.email} does not exist in database, auto-provisioning")
        user, verify_id = create_registered_user(db, identity.name, identity.email, None)
        verify_user_account(db, verify_id)
        db.refresh(user)

    return user
