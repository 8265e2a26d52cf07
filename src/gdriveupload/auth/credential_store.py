"""Host-bound protection of small secret files at rest.

Protected files look like ``GDRIVEUPLOAD_ENCRYPTED:<base64(nonce || ciphertext)>``.
The AES-GCM key is derived from a configured secret salted with a host
context (host name and login user by default), so a file protected on one
host/user does not decrypt on another. This is local tamper-and-peek
protection, not a portable encryption format.
"""

from __future__ import annotations

import base64
import binascii
import getpass
import logging
import os
import socket
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from gdriveupload.errors import (
    CredentialDecryptError,
    CredentialError,
    CredentialNotFoundError,
    EmptyCredentialError,
    MalformedCredentialError,
)

logger = logging.getLogger(__name__)

ENCRYPTED_MARKER: bytes = b"GDRIVEUPLOAD_ENCRYPTED:"

_NONCE_SIZE = 12
_KDF_ITERATIONS = 200_000


def default_host_context() -> str:
    """Return the host/user string the protection key is bound to."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = str(os.getuid()) if hasattr(os, "getuid") else ""
    return f"{socket.gethostname()}/{user}"


def is_protected(content: bytes) -> bool:
    """True if the content carries the encryption marker."""
    return content.startswith(ENCRYPTED_MARKER)


class CredentialStore:
    """Encrypt and decrypt secret files in place."""

    def __init__(self, secret: str | bytes, *, host_context: Optional[str] = None) -> None:
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        if not secret:
            raise ValueError("CredentialStore secret must not be empty")

        context = host_context if host_context is not None else default_host_context()
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=context.encode("utf-8"),
            iterations=_KDF_ITERATIONS,
        )
        self._aead = AESGCM(kdf.derive(secret))

    # ----------------------------
    # Public API
    # ----------------------------
    def protect(self, path: str) -> None:
        """
        Encrypt the file at path in place.

        Always wraps the current content; callers check is_protected first
        when the file may already be encrypted.
        """
        content = _read_secret_file(path)
        self.write_protected(path, content)

    def reveal(self, path: str) -> bytes:
        """
        Return the plaintext of the file at path.

        A plaintext file is encrypted in place and its original bytes are
        returned, so the first use is transparent.

        Raises:
            CredentialNotFoundError, EmptyCredentialError,
            MalformedCredentialError, CredentialDecryptError.
        """
        content = _read_secret_file(path)

        if not is_protected(content):
            self.write_protected(path, content)
            logger.info("Encrypted plaintext secret file %s", path)
            return content

        return self.decrypt(content, path=path)

    def write_protected(self, path: str, data: bytes) -> None:
        """Encrypt data and write it to path with the marker prepended."""
        payload = ENCRYPTED_MARKER + base64.b64encode(self.encrypt(data))

        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
        except OSError as exc:
            raise CredentialError(
                "Failed to write protected secret file",
                details={"path": path},
                cause=exc,
            ) from exc

    def encrypt(self, data: bytes) -> bytes:
        nonce = os.urandom(_NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, data, ENCRYPTED_MARKER)

    def decrypt(self, content: bytes, *, path: Optional[str] = None) -> bytes:
        """Decrypt marker-prefixed content as stored on disk."""
        encoded = content[len(ENCRYPTED_MARKER):].strip()
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedCredentialError(
                "Protected secret file has an invalid base64 payload",
                details={"path": path},
                cause=exc,
            ) from exc

        if len(raw) <= _NONCE_SIZE:
            raise MalformedCredentialError(
                "Protected secret file payload is truncated",
                details={"path": path},
            )

        nonce, ciphertext = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, ENCRYPTED_MARKER)
        except InvalidTag as exc:
            raise CredentialDecryptError(
                "Failed to decrypt secret file (corrupt, or protected on another host or with another secret)",
                details={"path": path},
                cause=exc,
            ) from exc


def _read_secret_file(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            content = f.read()
    except FileNotFoundError as exc:
        raise CredentialNotFoundError(
            "Secret file not found",
            details={"path": path},
            cause=exc,
        ) from exc
    except OSError as exc:
        raise CredentialError(
            "Failed to read secret file",
            details={"path": path},
            cause=exc,
        ) from exc

    if not content:
        raise EmptyCredentialError("Secret file is empty", details={"path": path})
    return content
