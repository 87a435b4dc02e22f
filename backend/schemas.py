"""
Pydantic v2 value types shared by the auth models and the permission resolver.

  - Permission: the action a grant allows on a target.
  - ResourceType: the kind of graph object a resource descriptor covers.
  - Resource: one protectable object attached to a target. Stored on the
    target as JSON and collected into sets when permissions are resolved,
    so it is frozen and hashes by content.
"""

import enum
import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Permission(str, enum.Enum):
    """Action granted by an Access record."""

    NONE = "none"
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    EXECUTE = "execute"
    ANY = "any"

    @classmethod
    def parse(cls, value: Any) -> "Permission":
        """Accept a member, its value or its name (any case)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        try:
            return cls(text.lower())
        except ValueError:
            return cls[text.upper()]


class ResourceType(str, enum.Enum):
    """Kind of graph object a Resource describes."""

    NONE = "NONE"
    STATUS = "STATUS"
    VERTEX = "VERTEX"
    EDGE = "EDGE"
    VERTEX_AGGR = "VERTEX_AGGR"
    EDGE_AGGR = "EDGE_AGGR"
    VAR = "VAR"
    GREMLIN = "GREMLIN"
    TASK = "TASK"
    PROPERTY_KEY = "PROPERTY_KEY"
    VERTEX_LABEL = "VERTEX_LABEL"
    EDGE_LABEL = "EDGE_LABEL"
    INDEX_LABEL = "INDEX_LABEL"
    SCHEMA = "SCHEMA"
    META = "META"
    ALL = "ALL"
    GRANT = "GRANT"
    USER_GROUP = "USER_GROUP"
    PROJECT = "PROJECT"
    TARGET = "TARGET"
    METRICS = "METRICS"
    ROOT = "ROOT"


ANY_LABEL = "*"


class Resource(BaseModel):
    """
    A protectable object: ``type`` + ``label`` (the resource id, ``*`` for
    any) + optional ``properties`` filter.
    """

    model_config = ConfigDict(frozen=True)

    type: ResourceType = ResourceType.NONE
    label: str = ANY_LABEL
    properties: Optional[Dict[str, Any]] = Field(default=None)

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Resource label must not be empty")
        return v

    def key(self) -> str:
        """Canonical JSON form; two resources are equal iff their keys are."""
        return json.dumps(self.model_dump(mode="json"), sort_keys=True)

    def __hash__(self) -> int:
        return hash(self.key())

    def matches(self, other: "Resource") -> bool:
        """True if this descriptor covers ``other`` (wildcards allowed)."""
        if self.type not in (ResourceType.ALL, other.type):
            return False
        if self.label not in (ANY_LABEL, other.label):
            return False
        if not self.properties:
            return True
        theirs = other.properties or {}
        return all(theirs.get(k) == v for k, v in self.properties.items())
