"""
sandbox/models.py -- Domain dataclasses for the sandbox API.

Pattern: Data class (pure data container, zero logic). The store maps rows to
these; routes map them to the pydantic schemas in sandbox/schemas.py.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An account that can obtain a token from the sandbox API.

    hashed_password is a bcrypt hash. is_superuser / is_system_auditor are
    reported verbatim by GET /api/v2/me/.
    """

    username: str
    hashed_password: str
    id: int | None = None
    is_superuser: bool = False
    is_system_auditor: bool = False
    is_active: bool = True
    created_at: str | None = None
    last_login: str | None = None
