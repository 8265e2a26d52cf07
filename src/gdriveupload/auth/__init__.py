"""Public auth exports for gdriveupload."""

from __future__ import annotations

from .callback import CallbackListener
from .credential_store import ENCRYPTED_MARKER, CredentialStore, is_protected
from .oauth_client import OAuthClient, redirect_uri_for
from .token_manager import TokenManager, TokenState, classify_token, token_file_for

__all__ = [
    "CallbackListener",
    "CredentialStore",
    "ENCRYPTED_MARKER",
    "is_protected",
    "OAuthClient",
    "redirect_uri_for",
    "TokenManager",
    "TokenState",
    "classify_token",
    "token_file_for",
]
