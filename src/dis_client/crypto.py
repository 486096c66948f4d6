"""
Record payload encryption.

Payloads are encrypted with Fernet (AES-128-CBC with HMAC). The key is derived
from the configured data password with PBKDF2-HMAC-SHA256 and a fixed salt, so
every client configured with the same password can read the stream.
"""

from __future__ import annotations

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from .errors import DISClientError

_SALT = b"dis-client/record-payload/v1"
_ITERATIONS = 390_000


@lru_cache(maxsize=8)
def _fernet(password: str) -> Fernet:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=_SALT, iterations=_ITERATIONS)
    key = base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))
    return Fernet(key)


class PayloadCipher:
    """Encrypts/decrypts record payloads with a password-derived key."""

    def __init__(self, password: str):
        if not password:
            raise DISClientError("data password can not be empty.")
        self._fernet = _fernet(password)

    def encrypt(self, data: bytes) -> bytes:
        return self._fernet.encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as e:
            logger.error("Failed to decrypt record payload (wrong password or plaintext record)")
            raise DISClientError("failed to decrypt record payload") from e
