# grievance_portal/secret_store.py
"""
Reversible at-rest encryption for sensitive grievance text.

Ciphertext is written as a tagged string, ``enc:v1:<fernet token>``, so a stored
value can always be told apart from plaintext that was saved before encryption
existed. ``reveal`` is the migration shim for such legacy rows.
"""

import base64
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from grievance_portal import monitoring
from grievance_portal.config import INSECURE_DEFAULT_ENCRYPTION_KEY

ENCRYPTED_PREFIX = "enc:v1:"

# Returned by decrypt() instead of raising.
DECRYPTION_FAILED = None

# Fixed so the same passphrase always yields the same key across restarts.
_KDF_SALT = b"grievance-portal/secret-store/v1"
_KDF_ITERATIONS = 100000


def _derive_key(passphrase: str) -> bytes:
    """Derive a Fernet key from a passphrase using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


def is_encrypted(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(ENCRYPTED_PREFIX)


class SecretStore:
    def __init__(self, passphrase: Optional[str] = None):
        if not passphrase:
            monitoring.logger.warning(
                "ENCRYPTION_KEY is not set; using the built-in default key. "
                "Grievance text is NOT protected at rest."
            )
            passphrase = INSECURE_DEFAULT_ENCRYPTION_KEY
        self._fernet = Fernet(_derive_key(passphrase))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return ENCRYPTED_PREFIX + token.decode("ascii")

    def decrypt(self, ciphertext: str) -> Optional[str]:
        """Return the plaintext, "" for "", or DECRYPTION_FAILED on any failure."""
        if not ciphertext:
            return ""
        token = ciphertext[len(ENCRYPTED_PREFIX):] if is_encrypted(ciphertext) else ciphertext
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError, TypeError) as e:
            monitoring.logger.debug("Decryption failed", extra={"error": type(e).__name__})
            return DECRYPTION_FAILED

    def reveal(self, stored: Optional[str]) -> str:
        """
        Read a stored sensitive field.

        Untagged values predate encryption and are returned unchanged. A tagged
        value that does not decrypt (wrong key, corruption) is returned raw so
        the admin view still shows something, and the failure is logged.
        """
        if not stored:
            return ""
        if not is_encrypted(stored):
            return stored
        plaintext = self.decrypt(stored)
        if plaintext is DECRYPTION_FAILED:
            monitoring.logger.warning("Stored ciphertext could not be decrypted; returning raw value")
            return stored
        return plaintext
