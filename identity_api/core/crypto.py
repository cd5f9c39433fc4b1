"""Authenticated encryption for values embedded in signed tokens."""

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from identity_api.core.exceptions import AuthenticationFailure

KEY_LENGTH = 32  # 256 bits
IV_LENGTH = 16  # 128 bits
AUTH_TAG_LENGTH = 16  # 128 bits
KDF_SALT = b"salt"


def derive_key(secret: str) -> bytes:
    """Derive a 256-bit key from the configured secret using scrypt."""
    kdf = Scrypt(salt=KDF_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class CryptoService:
    """
    AES-256-GCM helper used to hide raw database identifiers in JWT claims.

    Tokens are base64 of ``IV || auth tag || ciphertext``. The key is derived
    once per instance, so construct it at startup and inject it.
    """

    def __init__(self, secret: str):
        """Initialize service with a key derived from ``secret``."""
        self._aesgcm = AESGCM(derive_key(secret))

    def encrypt(self, plain_text: str) -> str:
        """
        Encrypt a string.

        Args:
            plain_text: Text to encrypt

        Returns:
            Base64 token containing IV, auth tag and ciphertext
        """
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plain_text.encode("utf-8"), None)
        cipher_text, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return base64.b64encode(iv + auth_tag + cipher_text).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        Decrypt a token produced by :meth:`encrypt`.

        Args:
            token: Base64 token

        Returns:
            The decrypted plain text

        Raises:
            AuthenticationFailure: If the token is malformed or the tag does not verify
        """
        try:
            combined = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AuthenticationFailure("Malformed encrypted token") from e

        if len(combined) < IV_LENGTH + AUTH_TAG_LENGTH:
            raise AuthenticationFailure("Malformed encrypted token")

        iv = combined[:IV_LENGTH]
        auth_tag = combined[IV_LENGTH : IV_LENGTH + AUTH_TAG_LENGTH]
        cipher_text = combined[IV_LENGTH + AUTH_TAG_LENGTH :]

        try:
            plain = self._aesgcm.decrypt(iv, cipher_text + auth_tag, None)
            return plain.decode("utf-8")
        except InvalidTag as e:
            raise AuthenticationFailure("Encrypted token failed authentication") from e
        except UnicodeDecodeError as e:
            raise AuthenticationFailure("Encrypted token is not valid text") from e
