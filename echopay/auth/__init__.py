"""Login package."""

from echopay.auth.credentials import (
    FIXED_CREDENTIALS,
    AuthenticationError,
    Credential,
    CredentialAuthority,
)

__all__ = [
    "FIXED_CREDENTIALS",
    "AuthenticationError",
    "Credential",
    "CredentialAuthority",
]
