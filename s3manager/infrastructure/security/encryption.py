"""Secret encryption for stored backend credentials (Fernet)."""

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from s3manager.core.config import get_settings
from s3manager.domain.exceptions import CredentialException

DECRYPTION_ERROR_MSG = "Failed to decrypt stored secret - invalid or corrupted data"


class SecretEncryptor:
    """Encrypt/decrypt secret access keys using Fernet (key derived from app secret)."""

    def __init__(self, secret_key: str, salt: str) -> None:
        self._fernet = Fernet(self._derive_key(secret_key, salt))

    @staticmethod
    def _derive_key(secret_key: str, salt: str) -> bytes:
        """Derive 32-byte key from secret_key + salt via PBKDF2-HMAC-SHA256."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode(),
            iterations=100_000,
        )
        return base64.urlsafe_b64encode(kdf.derive(secret_key.encode()))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret to a string safe for storage."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, token: str) -> str:
        """Decrypt a stored secret.

        Raises:
            CredentialException: If the token is invalid or was encrypted with another key.
        """
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise CredentialException(DECRYPTION_ERROR_MSG) from e


@lru_cache
def get_secret_encryptor() -> SecretEncryptor:
    """Process-wide encryptor built from settings (PBKDF2 runs once)."""
    settings = get_settings()
    return SecretEncryptor(
        settings.secret_key.get_secret_value(),
        settings.encryption_salt.get_secret_value(),
    )
