"""Credential vault: authenticated encryption for bank connection secrets.

Payloads are small JSON-serializable objects (login fields, 2FA tokens).
Blobs have the shape ``base64(iv).base64(ciphertext).base64(tag)`` and are
encrypted with AES-256-GCM under a key derived from a single master secret
plus a domain tag, so the same master secret cannot open ciphertexts that
belong to another subsystem.
"""

import base64
import binascii
import hashlib
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from banksync.config import settings
from banksync.core.exceptions import AuthenticationError, ConfigurationError, FormatError

DEFAULT_DOMAIN = "bank_creds"
IV_BYTES = 16
TAG_BYTES = 16


def derive_key(master_secret: str, domain: str = DEFAULT_DOMAIN) -> bytes:
    """
    Derive a 256-bit key from the master secret and a domain tag.

    Args:
        master_secret: Shared master secret
        domain: Domain separation tag (e.g. "bank_creds")

    Returns:
        32-byte key (never persisted)
    """
    return hashlib.sha256(f"{master_secret}_{domain}".encode("utf-8")).digest()


def _b64decode(segment: str) -> bytes:
    try:
        return base64.b64decode(segment, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FormatError("Invalid encrypted credential encoding") from e


class CredentialVault:
    """Encrypts and decrypts connection secrets.

    Example:
        >>> vault = CredentialVault("master-secret")
        >>> blob = vault.encrypt({"email": "a@b.c", "password": "pw"})
        >>> vault.decrypt(blob)["email"]
        'a@b.c'
    """

    def __init__(self, master_secret: str | None, domain: str = DEFAULT_DOMAIN):
        self._master_secret = master_secret
        self.domain = domain

    @property
    def is_configured(self) -> bool:
        return bool(self._master_secret)

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if no master secret is available."""
        if not self.is_configured:
            raise ConfigurationError(
                "Credential master secret is not configured (set CREDENTIALS_SECRET)"
            )

    def _cipher(self) -> AESGCM:
        self.ensure_configured()
        return AESGCM(derive_key(self._master_secret, self.domain))

    def encrypt(self, payload: Any) -> str:
        """
        Encrypt a JSON-serializable payload.

        A fresh random IV is generated per call, so encrypting the same payload
        twice yields different blobs.

        Args:
            payload: JSON-serializable object

        Returns:
            Blob string ``iv.ciphertext.tag`` (base64 segments)

        Raises:
            ConfigurationError: If no master secret is configured
        """
        cipher = self._cipher()
        iv = os.urandom(IV_BYTES)
        plaintext = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        sealed = cipher.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ".".join(
            base64.b64encode(part).decode("ascii") for part in (iv, ciphertext, tag)
        )

    def decrypt(self, blob: str) -> Any:
        """
        Decrypt a blob produced by encrypt().

        Args:
            blob: Encrypted blob

        Returns:
            The original payload

        Raises:
            ConfigurationError: If no master secret is configured
            FormatError: If the blob is not three valid base64 segments
            AuthenticationError: If the tag check fails (tampering or wrong key)
        """
        cipher = self._cipher()

        parts = blob.split(".") if isinstance(blob, str) else []
        if len(parts) != 3:
            raise FormatError("Invalid encrypted credential format")

        iv, ciphertext, tag = (_b64decode(part) for part in parts)
        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise FormatError("Invalid encrypted credential format")

        try:
            plaintext = cipher.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise AuthenticationError("Encrypted credential failed authentication") from e

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FormatError("Decrypted credential is not valid JSON") from e

    def encrypt_token(self, token: str) -> str:
        """Encrypt a single long-term token string."""
        return self.encrypt({"token": token})

    def decrypt_token(self, blob: str) -> str:
        """Decrypt a blob produced by encrypt_token()."""
        payload = self.decrypt(blob)
        if not isinstance(payload, dict) or not isinstance(payload.get("token"), str):
            raise FormatError("Encrypted token payload is malformed")
        return payload["token"]


def get_vault() -> CredentialVault:
    """Build a vault from application settings."""
    return CredentialVault(settings.credentials_secret)
