# Claim tokens and grants: only the sha256 hash is stored server-side.

import hashlib
import secrets


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def new_token() -> tuple[str, str]:
    """Return (plain_token, token_hash)."""
    token = secrets.token_hex(32)
    return token, hash_value(token)
