from __future__ import annotations

import secrets


def new_state_token() -> str:
    """Generate a random anti-forgery state value for an authorization round."""
    return secrets.token_urlsafe(16)
