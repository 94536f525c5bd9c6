"""Declarative base and timestamp mixin for jobspine ORM models.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types.

Mixins
------
* **TimestampMixin** — ``created_at`` / ``updated_at`` maintained on the
  Python side so every dialect gets identical values.
"""

from __future__ import annotations

import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class JobSpineBase(DeclarativeBase):
    """Shared declarative base for every jobspine table.

    * ``str``   → ``String``
    * ``int``   → ``Integer``
    * ``bool``  → ``Boolean``
    * ``datetime.datetime`` → ``DateTime(timezone=True)``
    """

    type_annotation_map = {
        str: String,
        int: Integer,
        bool: Boolean,
        datetime.datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """Adds ``created_at`` (set on insert) and ``updated_at`` (set on every write)."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
