#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the StellarAid API.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- to_dict() that formats timestamps and never exposes secret columns

Notes:
- Timestamps get a Python-side default as well as a server default so the
  values are present on the instance right after the INSERT.
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

TIME_FMT = "%Y-%m-%dT%H:%M:%S.%f"

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BaseModel:
    """
    Base mixin for all persistent models.

    - id, created_at, updated_at
    - to_dict() with timestamp formatting; columns listed in
      ``__private_fields__`` are left out
    """

    __private_fields__ = ()

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if user passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] ({self.id})"

    def to_dict(self) -> dict:
        """
        Return a dictionary of column values suitable for API responses.
        Datetimes are formatted with TIME_FMT, private columns are dropped.
        """
        d = {}
        for column in self.__table__.columns:
            if column.name in self.__private_fields__:
                continue
            value = getattr(self, column.name, None)
            if isinstance(value, datetime):
                value = value.strftime(TIME_FMT)
            d[column.name] = value
        return d
