"""Columns shared by every auth element (users, groups, targets, projects, edges)."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthElementMixin:
    """
    Opaque string id, creator and timestamps.

    Ids are assigned by the store on ``add`` so callers can reference an
    element before the surrounding transaction commits.
    """

    id = Column(String(36), primary_key=True, default=new_id)
    creator = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
