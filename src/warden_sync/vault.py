"""
Credential vault for stored external-account passwords.

Passwords are encrypted with Fernet (AES-128-CBC + HMAC) under a key derived
from the server-held secret. A failed decrypt means the token was produced
under a different key, which callers report as a re-entry requirement.
"""

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class CredentialDecryptError(Exception):
    """The stored credential cannot be decrypted with the current key."""


def derive_key(secret: str) -> bytes:
    """Turn an arbitrary secret string into a Fernet key.

    A value that already is a valid Fernet key is used unchanged.
    """
    raw = secret.encode("utf-8")
    try:
        if len(base64.urlsafe_b64decode(raw)) == 32:
            return raw
    except ValueError:
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


class CredentialVault:
    """Symmetric encrypt/decrypt of external-account passwords."""

    def __init__(self, secret: str | None = None) -> None:
        if secret is None:
            logger.warning(
                "⚠️ No encryption key configured, using an ephemeral key. "
                "Stored credentials will not survive a restart."
            )
            self._fernet = Fernet(Fernet.generate_key())
        else:
            self._fernet = Fernet(derive_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt a stored credential.

        Raises:
            CredentialDecryptError: If the token was encrypted under another
                key or is corrupted
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise CredentialDecryptError("Stored credential could not be decrypted") from e
