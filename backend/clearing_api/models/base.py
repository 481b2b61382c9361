"""Base model utilities for the clearing RBAC service.

Provides an ObjectId-style primary-key mixin so every model automatically
gets an ``id`` column holding a 24-character hex identifier, plus the
helpers used to generate and validate such identifiers.
"""
from __future__ import annotations

import datetime
import re
import secrets
import time

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"

_OBJECT_ID_RE = re.compile(OBJECT_ID_PATTERN)


def new_object_id() -> str:
    """Return a new identifier: 4-byte epoch seconds followed by 8 random bytes."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def is_object_id(value: object) -> bool:
    """True when *value* is a well-formed 24-hex-character identifier."""
    return isinstance(value, str) and _OBJECT_ID_RE.match(value) is not None


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ObjectIdPrimaryKeyMixin:
    """Mixin that adds a 24-hex-character primary key column named ``id``."""

    id: Mapped[str] = mapped_column(
        String(24),
        primary_key=True,
        default=new_object_id,
    )
