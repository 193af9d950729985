"""
sandbox/schemas.py -- Request and response models for the sandbox REST API.

Pydantic v2 models define the HTTP contract. They are separate from the
dataclasses in sandbox/models.py, which own the stored shape. Route handlers
map between the two.

Error bodies follow the Django REST Framework convention the login client
expects: a dict of field name -> list of messages, with "non_field_errors"
for problems that are not tied to a single field.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TokenRequest(BaseModel):
    """Body for POST /api/v2/authtoken/.

    Both fields default to empty so a missing field reaches the route and gets
    a DRF-style "This field is required." message rather than a 422.
    """

    model_config = ConfigDict(str_strip_whitespace=False, extra="ignore")

    username: Optional[str] = Field(default="", max_length=255)
    password: Optional[str] = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    token: str
    expires: datetime


class MeUser(BaseModel):
    id: int
    username: str
    is_superuser: bool
    is_system_auditor: bool


class MeResponse(BaseModel):
    count: int
    results: list[MeUser]


class ConfigResponse(BaseModel):
    version: str
    license_info: dict[str, Any]


class PingResponse(BaseModel):
    status: str
    version: str
