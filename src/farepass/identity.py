"""
Rider identity resolution.

Riders are identified by an opaque id their device generates and sends with every
request; nothing verifies it. Route handlers and the CLI go through an
`IdentityResolver` so a real authentication scheme can replace
`ClientSuppliedIdentity` without touching the ledger.
"""

from __future__ import annotations

import secrets
import string
from typing import Protocol

from farepass.domain.errors import InvalidUserId

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 26
_MAX_ID_LENGTH = 128


class IdentityResolver(Protocol):
    def resolve(self, claimed_user_id: str | None) -> str: ...


class ClientSuppliedIdentity:
    """Trusts whatever id the client presents (after trimming)."""

    def resolve(self, claimed_user_id: str | None) -> str:
        user_id = (claimed_user_id or "").strip()
        if not user_id:
            raise InvalidUserId("Missing user_id")
        if len(user_id) > _MAX_ID_LENGTH:
            raise InvalidUserId(f"user_id must be at most {_MAX_ID_LENGTH} characters")
        return user_id


def generate_user_id() -> str:
    """New random rider id (26 lowercase base-36 characters)."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))
