"""
Symmetric encryption for secrets at rest.

Provider API keys and channel credentials are stored as Fernet tokens and
decrypted only when a policy is resolved.

Usage:
    cipher = SecretCipher(key)          # key from SecretCipher.generate_key()
    token = cipher.encrypt("rr_live_...")
    plain = cipher.decrypt(token)
"""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class SecretCipher:
    """Fernet wrapper. Decryption failures yield an empty secret, never an exception."""

    def __init__(self, key: str):
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, token: Optional[str]) -> str:
        if not token:
            return ""
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            logger.error("Failed to decrypt secret: invalid token or wrong key")
            return ""
