"""
Fixed Credential Login

Exactly two people use the channel, so login is a lookup in a
hard-coded list. No token is issued; the resulting session lives only
in client memory.
"""

import hmac
from typing import Mapping, NamedTuple, Optional

from echopay.models.ledger import Account


class AuthenticationError(Exception):
    """Username/password pair not recognized."""
    pass


class Credential(NamedTuple):
    password: str
    account: Account


FIXED_CREDENTIALS: Mapping[str, Credential] = {
    "user-a": Credential(password="echopay-a", account=Account.USER_A),
    "user-b": Credential(password="echopay-b", account=Account.USER_B),
}


class CredentialAuthority:
    """Resolves a username/password pair to one of the two accounts."""

    def __init__(self, credentials: Optional[Mapping[str, Credential]] = None):
        self._credentials = dict(credentials or FIXED_CREDENTIALS)

    def authenticate(self, username: str, password: str) -> Account:
        """
        Raises:
            AuthenticationError: Unknown user or wrong password
        """
        credential = self._credentials.get((username or "").strip())
        if credential is None or not hmac.compare_digest(
            credential.password.encode(), (password or "").encode()
        ):
            raise AuthenticationError("Invalid username or password")
        return credential.account
